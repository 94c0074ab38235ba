from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from oos_autopilot.core.security import decode_session_token, verify_webhook_hmac
from oos_autopilot.services.catalog_gateway import ShopifyCatalogGateway, build_gateway, CatalogQueryError
from oos_autopilot.services.store import RunStateStore

bearer_scheme = HTTPBearer(auto_error=False)

_store = RunStateStore()


def get_store() -> RunStateStore:
    return _store


def require_shop(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> str:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing session token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    shop = decode_session_token(credentials.credentials)
    if not shop:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate session token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return shop


async def get_gateway(shop: str = Depends(require_shop)):
    try:
        gateway = build_gateway(shop)
    except CatalogQueryError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    async with gateway:
        yield gateway


async def verified_webhook_body(
    request: Request,
    x_shopify_hmac_sha256: str = Header(default=None),
) -> bytes:
    body = await request.body()
    if not verify_webhook_hmac(body, x_shopify_hmac_sha256):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature")
    return body


def webhook_gateway(shop: str) -> ShopifyCatalogGateway:
    try:
        return build_gateway(shop)
    except CatalogQueryError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
