import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import config, redis_helper
from .api import admin as admin_api
from .api import webhook as webhook_api
from .jobs.dispatcher import Dispatcher
from .jobs.enqueue import EnqueueClient
from .jobs.errors import BrokerError, InvalidScheduleError, InvalidSignatureError
from .jobs.registry import JobRegistry, build_registry
from .jobs.schedules import ScheduleManager
from .jobs.signature import SignatureReceiver
from .kv import KVClient
from .logging_config import get_logger, setup_logging
from .metrics import metrics_response, request_latency_seconds
from .sessions import SessionStore

logger = get_logger(__name__)


def create_app(
    redis_client=None,
    registry: Optional[JobRegistry] = None,
    enqueue_client: Optional[EnqueueClient] = None,
    schedule_manager: Optional[ScheduleManager] = None,
    receiver: Optional[SignatureReceiver] = None,
    app_url: Optional[str] = None,
) -> FastAPI:
    """Build the app and its collaborators.

    The job registry is complete before the app is returned, so request
    handlers only ever read it.
    """
    if redis_client is None:
        redis_client = redis_helper.get_redis()
    if app_url is None:
        app_url = config.app_url()

    kv = KVClient(redis_client)
    sessions = SessionStore(redis_client)
    if registry is None:
        registry = build_registry(kv, sessions)

    app = FastAPI(title="jobrelay")
    app.state.app_url = app_url
    app.state.kv = kv
    app.state.sessions = sessions
    app.state.registry = registry
    app.state.dispatcher = Dispatcher(registry)
    app.state.enqueue_client = enqueue_client or EnqueueClient(app_url=app_url)
    app.state.schedule_manager = schedule_manager or ScheduleManager(app_url=app_url)
    app.state.receiver = receiver or SignatureReceiver()

    app.include_router(webhook_api.router)
    app.include_router(admin_api.router)

    @app.exception_handler(InvalidSignatureError)
    async def invalid_signature(request: Request, exc: InvalidSignatureError):
        logger.warning("signature_rejected", path=request.url.path, reason=str(exc))
        return JSONResponse(status_code=401, content={"error": "Invalid signature"})

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError):
        fields = [list(e["loc"]) for e in exc.errors()]
        logger.warning("request_invalid", path=request.url.path, fields=fields)
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(InvalidScheduleError)
    async def invalid_schedule(request: Request, exc: InvalidScheduleError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(BrokerError)
    async def broker_failed(request: Request, exc: BrokerError):
        logger.error("broker_request_failed", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=502, content={"error": "Broker request failed"})

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start = time.time()
        try:
            response = await call_next(request)
            return response
        finally:
            request_latency_seconds.observe(time.time() - start)

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    @app.get("/readyz")
    async def readyz(request: Request):
        ready = await request.app.state.kv.ping()
        return JSONResponse(status_code=200 if ready else 503, content={"ready": ready})

    @app.get("/metrics")
    async def metrics():
        return metrics_response()

    logger.info("app_created", jobs=registry.list_names(), app_url=app_url)
    return app


setup_logging()
app = create_app()
