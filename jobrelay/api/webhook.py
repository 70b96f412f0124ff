from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from .. import config
from ..auth import verified_body

router = APIRouter(tags=["webhook"])


@router.post(config.WEBHOOK_PATH)
async def jobs_webhook(request: Request, body: bytes = Depends(verified_body)):
    outcome = await request.app.state.dispatcher.dispatch(body)
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)


@router.post("/qstash/verify")
async def verify_signature(body: bytes = Depends(verified_body)):
    return {"ok": True}
