import secrets
from datetime import UTC, datetime

TOKEN_BYTES = 32  # 256 bits of entropy


def now() -> datetime:
    return datetime.now(UTC)


def generate_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def token_fingerprint(token: str) -> str:
    """Short prefix of a token, safe to put in logs."""
    return token[:8]
