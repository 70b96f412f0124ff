from fastapi import HTTPException, Request, Security
from fastapi.security.api_key import APIKeyHeader

from . import config
from .jobs.signature import SIGNATURE_HEADER
from .logging_config import get_logger

logger = get_logger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def require_api_key(api_key: str = Security(api_key_header)):
    if api_key is None:
        raise HTTPException(status_code=401, detail="Missing API key")
    if api_key != config.API_KEY:
        raise HTTPException(status_code=403, detail="Invalid API key")
    return True


async def verified_body(request: Request) -> bytes:
    """Raw request body, returned only once the broker signature checks out.

    InvalidSignatureError propagates to the app's exception handler before
    anything looks at the body.
    """
    body = await request.body()
    app_url = request.app.state.app_url
    url = f"{app_url}{request.url.path}" if app_url else None
    request.app.state.receiver.verify(request.headers.get(SIGNATURE_HEADER), body, url=url)
    return body
