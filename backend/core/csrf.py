import hashlib
import hmac
import secrets

from fastapi import Request

from core.config import settings
from core.errors import AppError

SAFE_METHODS = ("GET", "HEAD", "OPTIONS", "TRACE")


def _sign(nonce: str) -> str:
    return hmac.new(settings.csrf_secret.encode("utf-8"), nonce.encode("utf-8"), hashlib.sha256).hexdigest()


def issue_csrf_token() -> str:
    """Random nonce plus its HMAC: `<nonce>.<signature>`."""
    nonce = secrets.token_urlsafe(32)
    return f"{nonce}.{_sign(nonce)}"


def verify_csrf_token(token: str) -> bool:
    if not token or "." not in token:
        return False
    nonce, signature = token.rsplit(".", 1)
    return hmac.compare_digest(signature, _sign(nonce))


async def csrf_protect(request: Request) -> None:
    """Double-submit check for state-changing requests."""
    if not settings.csrf_enabled or request.method.upper() in SAFE_METHODS:
        return

    header = request.headers.get(settings.csrf_header_name)
    cookie = request.cookies.get(settings.csrf_cookie_name)
    if not header or not cookie:
        raise AppError.authorization("Invalid CSRF token")
    if not hmac.compare_digest(header, cookie) or not verify_csrf_token(header):
        raise AppError.authorization("Invalid CSRF token")
