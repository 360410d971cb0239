"""Application-wide configuration constants."""

import string
from pathlib import Path

import httpx

# --- Networking ---
API_HOST = "0.0.0.0"
DEFAULT_PORT = 8844
UPLOAD_PATH = "/upload"

# --- Discovery ---
SERVICE = "_ftr._tcp"
DOMAIN = "local."
SERVICE_TYPE = f"{SERVICE}.{DOMAIN}"
LIST_TIMEOUT = 3.0  # seconds a `list` keeps browsing
LOOKUP_TIMEOUT = 2.0  # seconds a `send` waits for the peer to answer
RESOLVE_REQUEST_MS = 3000  # per-instance resolution while browsing

# --- Authentication ---
PASSKEY_LENGTH = 6
PASSKEY_ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits
PASSKEY_HEADER = "X-Ftr-Passkey"
FILE_TYPE_HEADER = "X-Ftr-File-Type"

# --- Transfer ---
CHUNK_SIZE = 131072  # 128 KB
ARCHIVE_SUFFIX = ".tar.gz"
# The receiver answers only after the body is stored (and unpacked), so the
# read timeout has to cover that.
UPLOAD_TIMEOUT = httpx.Timeout(10.0, read=300.0)


def default_drop_dir() -> str:
    """Return ~/Downloads for the current user."""
    return str(Path.home() / "Downloads")
