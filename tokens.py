# tokens.py

import os
import base64
import logging
import secrets

from dotenv import load_dotenv

from errors import RandomnessFailure

load_dotenv()

logger = logging.getLogger(__name__)

MIN_TOKEN_BYTES = 16


def _token_bytes_from_env() -> int:
    try:
        return max(MIN_TOKEN_BYTES, int(os.getenv("PDS_TOKEN_BYTES", "32")))
    except ValueError:
        return 32


TOKEN_BYTES = _token_bytes_from_env()


# ─── TOKEN GENERATOR ─────────────────────────────────────

def generate_token(byte_length: int = TOKEN_BYTES) -> str:
    """Return an unguessable token safe for a URL path segment ([A-Za-z0-9_-])."""
    byte_length = max(MIN_TOKEN_BYTES, int(byte_length))
    try:
        raw = secrets.token_bytes(byte_length)
    except (OSError, NotImplementedError) as e:
        logger.error(f"Entropy source failed while generating share token: {e}")
        raise RandomnessFailure("secure random source unavailable") from e
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def token_hint(token: str) -> str:
    """Short prefix that is safe to put in log lines."""
    return (token or "")[:6] + "…"
