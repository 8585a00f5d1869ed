"""
Outbound requests against validated relay targets.

Redirects are followed by hand so that every hop passes through the same
target validation and network guard as the caller's URL. A single
``asyncio.wait_for`` deadline covers a whole attempt: HEAD plus the GET
fallback for ``probe``, connect through response headers for ``fetch``.
"""

import asyncio
import logging
from typing import Awaitable, Dict, Optional, Tuple, Union

import httpx

from pdf_relay.relay.models import (
    RelayError,
    RelayErrorKind,
    ResolvedTarget,
    UpstreamDescriptor,
)
from pdf_relay.relay.network_guard import NetworkGuard
from pdf_relay.relay.target import check_target
from pdf_relay.utils import redact_url
from pdf_relay.vars import RelayConfig

logger = logging.getLogger("uvicorn.error")

PDF_ACCEPT = "application/pdf,*/*"
TIMEOUT_DETAIL = "Upstream timeout"

SendResult = Union[Tuple[httpx.Response, str], RelayError]


def upstream_failure(status_code: int) -> RelayError:
    return RelayError(
        RelayErrorKind.UPSTREAM_FAILURE,
        f"Upstream failed: {status_code}",
        status_code=status_code,
    )


class UpstreamFetcher:
    """
    Issues probe (metadata-only) and fetch (full body) requests upstream.

    The fetcher owns its ``httpx.AsyncClient`` unless one is passed in;
    call ``aclose()`` at shutdown either way.
    """

    def __init__(
        self,
        config: RelayConfig,
        guard: NetworkGuard,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.guard = guard
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout_seconds),
            follow_redirects=False,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    def _headers(self, accept: Optional[str] = None) -> Dict[str, str]:
        headers = {"User-Agent": self.config.user_agent}
        if accept:
            headers["Accept"] = accept
        return headers

    async def _send(
        self, method: str, url: str, headers: Dict[str, str]
    ) -> SendResult:
        """
        Send ``method`` to ``url`` with streaming enabled, following redirects.

        Returns the open final response together with the URL it came from.
        The caller owns the response and must close it.
        """
        request = self.client.build_request(method, url, headers=headers)
        for _ in range(self.config.max_redirects + 1):
            response = await self.client.send(
                request, stream=True, follow_redirects=False
            )
            next_request = response.next_request
            if next_request is None:
                return response, str(request.url)

            await response.aclose()
            hop = check_target(str(next_request.url), self.guard)
            if isinstance(hop, RelayError):
                logger.warning(
                    f"[Fetcher] Refusing redirect {redact_url(str(request.url))} -> "
                    f"{redact_url(str(next_request.url))}: {hop.detail}"
                )
                return hop
            logger.debug(f"[Fetcher] Following redirect to {redact_url(hop.url)}")
            request = next_request

        return RelayError(RelayErrorKind.UPSTREAM_FAILURE, "Too many redirects")

    async def _bounded(self, attempt: Awaitable, url: str):
        try:
            return await asyncio.wait_for(attempt, timeout=self.config.timeout_seconds)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"[Fetcher] Upstream timeout for {redact_url(url)}")
            return RelayError(RelayErrorKind.TIMEOUT, TIMEOUT_DETAIL)
        except httpx.InvalidURL as e:
            return RelayError(RelayErrorKind.INVALID_URL, f"Invalid URL: {e}")
        except httpx.HTTPError as e:
            logger.warning(f"[Fetcher] Upstream request failed for {redact_url(url)}: {e}")
            return RelayError(
                RelayErrorKind.UPSTREAM_FAILURE, f"Upstream request failed: {e}"
            )

    async def probe(
        self, target: ResolvedTarget
    ) -> Union[UpstreamDescriptor, RelayError]:
        """Fetch status and headers only: HEAD first, GET without reading the body as fallback."""
        return await self._bounded(self._probe(target), target.url)

    async def _probe(
        self, target: ResolvedTarget
    ) -> Union[UpstreamDescriptor, RelayError]:
        headers = self._headers()
        try:
            head = await self._send("HEAD", target.url, headers)
        except httpx.HTTPError as e:
            logger.info(f"[Fetcher] HEAD failed for {redact_url(target.url)}, retrying with GET: {e}")
            head = None

        if isinstance(head, RelayError) and head.kind == RelayErrorKind.BLOCKED_HOST:
            return head
        if isinstance(head, tuple):
            response, final_url = head
            await response.aclose()
            if response.is_success:
                return UpstreamDescriptor.from_response(
                    response, final_url, keep_body=False
                )
            logger.info(
                f"[Fetcher] HEAD returned {response.status_code} for "
                f"{redact_url(target.url)}, retrying with GET"
            )

        sent = await self._send("GET", target.url, headers)
        if isinstance(sent, RelayError):
            return sent
        response, final_url = sent
        # Headers are all a probe needs; the body is never read.
        await response.aclose()
        if not response.is_success:
            return upstream_failure(response.status_code)
        return UpstreamDescriptor.from_response(response, final_url, keep_body=False)

    async def fetch(
        self, target: ResolvedTarget
    ) -> Union[UpstreamDescriptor, RelayError]:
        """Open a full GET; on success the descriptor holds the unread body."""
        return await self._bounded(self._fetch(target), target.url)

    async def _fetch(
        self, target: ResolvedTarget
    ) -> Union[UpstreamDescriptor, RelayError]:
        sent = await self._send("GET", target.url, self._headers(accept=PDF_ACCEPT))
        if isinstance(sent, RelayError):
            return sent
        response, final_url = sent
        if not response.is_success:
            await response.aclose()
            return upstream_failure(response.status_code)
        return UpstreamDescriptor.from_response(response, final_url, keep_body=True)
