# Make `import pdf_relay.*` resolve to this checkout when pytest runs from the
# repository root without an editable install.
import os
import sys

SERVICE_ROOT = os.path.dirname(__file__)

if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

# Routes are mounted at import time; tests address them at /api/*.
os.environ.pop("RELAY_BASE_PATH", None)
