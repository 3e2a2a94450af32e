"""Email addresses and sign-in email sending via Resend API.

normalize_email() is the one place addresses are canonicalized, so issuance
and verification always agree on the stored key. Sending is a simple HTTP
POST to Resend; each email carries both the magic link and the one-time code
so the user can pick either path.
"""

import logging
from urllib.parse import quote, urlencode

import httpx
from email_validator import EmailNotValidError, validate_email

from practice_perfect.core.config import settings
from practice_perfect.core.errors import DeliveryFailedError, InvalidInputError

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0


def normalize_email(email: str) -> str:
    """Validate email syntax and return its canonical form.

    The address is trimmed, Unicode-normalized (NFC) by email-validator, and
    lower-cased.

    Raises:
        InvalidInputError: If the address is not syntactically valid.
    """
    try:
        validated = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError as exc:
        raise InvalidInputError("A valid email address is required") from exc
    return validated.normalized.lower()


def build_magic_link(*, token: str, email: str) -> str:
    """Build the verification URL embedded in the sign-in email.

    The link points at this service so the verify endpoint can set the
    session cookie, then redirect to the frontend.
    """
    params = urlencode({"token": token, "email": email}, quote_via=quote)
    return f"{settings.api_url}/api/auth/verify?{params}"


async def send_sign_in_email(
    *, to_email: str, token: str, code: str, expires_in_minutes: int
) -> None:
    """Send a sign-in email via Resend.

    Args:
        to_email: Recipient email address.
        token: Plain (unhashed) magic link token.
        code: Plain one-time code.
        expires_in_minutes: Artifact lifetime, quoted in the email body.

    Raises:
        DeliveryFailedError: If Resend cannot be reached or rejects the email.
    """
    verify_url = build_magic_link(token=token, email=to_email)

    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                _RESEND_API_URL,
                headers={
                    "Authorization": f"Bearer {settings.resend_api_key.get_secret_value()}",
                },
                json={
                    "from": settings.email_from,
                    "to": to_email,
                    "subject": "Sign in to PracticePerfect",
                    "text": (
                        f"Click this link to sign in:\n\n{verify_url}\n\n"
                        f"Or enter this code in the app: {code}\n\n"
                        f"This link and code expire in {expires_in_minutes} minutes. "
                        "If you didn't request this, you can safely ignore this email."
                    ),
                },
                timeout=_RESEND_TIMEOUT,
            )
            resp.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Failed to send sign-in email", exc_info=True)
        raise DeliveryFailedError() from exc
