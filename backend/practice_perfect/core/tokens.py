"""Sign-in artifact secrets: magic link tokens and one-time codes.

Both values come from the ``secrets`` CSPRNG. Only their SHA-256 digests
are persisted; the plain values exist in the email and nowhere else.
"""

import hashlib
import secrets

# 32 bytes -> 43 URL-safe characters (256 bits of entropy)
_TOKEN_BYTES = 32


def generate_sign_in_token() -> str:
    """Generate a URL-safe magic link token."""
    return secrets.token_urlsafe(_TOKEN_BYTES)


def generate_sign_in_code(length: int = 6) -> str:
    """Generate a fixed-length numeric one-time code.

    Each digit is drawn uniformly with secrets.randbelow, so leading zeros
    are as likely as any other digit.

    Args:
        length: Number of digits.

    Returns:
        Digit string of exactly ``length`` characters.
    """
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def hash_secret(value: str) -> str:
    """SHA-256 hex digest used to store and look up artifact secrets."""
    return hashlib.sha256(value.encode()).hexdigest()
