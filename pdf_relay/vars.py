import os
from dataclasses import dataclass

SERVICE_NAME = os.getenv("SERVICE_NAME", "pdf-relay")
RELAY_BASE_PATH = os.environ.get("RELAY_BASE_PATH", "").rstrip("/")

RELAY_BLOCK_INTERNAL = os.getenv("RELAY_BLOCK_INTERNAL", "true").lower() == "true"
RELAY_LIMIT_BYTES = int(os.getenv("RELAY_LIMIT_BYTES", str(40 * 1024 * 1024)))
RELAY_TIMEOUT_MS = int(os.getenv("RELAY_TIMEOUT_MS", "30000"))
RELAY_USER_AGENT = os.getenv("RELAY_USER_AGENT", "Mozilla/5.0 (PDF Relay)")
RELAY_MAX_REDIRECTS = int(os.getenv("RELAY_MAX_REDIRECTS", "20"))

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")


@dataclass(frozen=True)
class RelayConfig:
    """
    Fixed relay settings, built once at startup and handed to every component.

    Attributes:
        block_internal: Refuse loopback/private/link-local targets
        byte_ceiling: Maximum number of body bytes relayed per request
        timeout_ms: Wall-clock limit for one upstream attempt
        user_agent: User-Agent sent on every upstream request
        max_redirects: Redirect hops followed before giving up
    """

    block_internal: bool = True
    byte_ceiling: int = 40 * 1024 * 1024
    timeout_ms: int = 30000
    user_agent: str = "Mozilla/5.0 (PDF Relay)"
    max_redirects: int = 20

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    @classmethod
    def from_env(cls) -> "RelayConfig":
        return cls(
            block_internal=RELAY_BLOCK_INTERNAL,
            byte_ceiling=RELAY_LIMIT_BYTES,
            timeout_ms=RELAY_TIMEOUT_MS,
            user_agent=RELAY_USER_AGENT,
            max_redirects=RELAY_MAX_REDIRECTS,
        )
