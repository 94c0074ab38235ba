# oos_autopilot/core/security.py
import base64
import hashlib
import hmac
from typing import Optional
from urllib.parse import urlparse

from jose import jwt, JWTError

from oos_autopilot.core.config import settings


# Base decode
def _decode_raw(token: str) -> Optional[dict]:
    if not settings.SHOPIFY_API_SECRET:
        return None
    options = {"verify_aud": bool(settings.SHOPIFY_API_KEY)}
    try:
        return jwt.decode(
            token,
            settings.SHOPIFY_API_SECRET,
            algorithms=[settings.ALGORITHM],
            audience=settings.SHOPIFY_API_KEY or None,
            options=options,
        )
    except JWTError:
        return None


def shop_from_dest(dest: Optional[str]) -> Optional[str]:
    # "https://my-shop.myshopify.com" -> "my-shop.myshopify.com"
    if not dest:
        return None
    host = urlparse(dest).netloc or dest
    return host.strip().lower() or None


# Decode admin session token (App Bridge id token)
def decode_session_token(token: str) -> Optional[str]:
    """Returns the shop domain the token was issued for, or None."""
    payload = _decode_raw(token)
    if not payload:
        return None
    return shop_from_dest(payload.get("dest"))


# Webhook signature
def compute_webhook_hmac(body: bytes, secret: Optional[str] = None) -> str:
    key = (secret if secret is not None else settings.SHOPIFY_API_SECRET).encode("utf-8")
    digest = hmac.new(key, body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_webhook_hmac(body: bytes, signature: Optional[str]) -> bool:
    if not signature or not settings.SHOPIFY_API_SECRET:
        return False
    return hmac.compare_digest(compute_webhook_hmac(body), signature.strip())
