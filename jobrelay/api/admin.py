from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..auth import require_api_key
from ..jobs.registry import BUILTIN_JOBS, KV_CLEANUP_MCP, KV_CLEANUP_PKCE
from ..schemas import EnqueueRequest, Job, ScheduleCreate

router = APIRouter(dependencies=[Depends(require_api_key)], tags=["admin"])


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


@router.post("/admin/jobs/enqueue")
async def enqueue_job(req: EnqueueRequest, request: Request):
    if not req.name:
        return _bad_request("Missing job name")
    job = Job(name=req.name, payload=req.payload)
    result = await request.app.state.enqueue_client.enqueue(job, req.options)
    return {"ok": True, "result": result}


@router.get("/admin/jobs/registry")
async def list_registered_jobs(request: Request):
    return {"jobs": request.app.state.registry.list_names()}


@router.get("/admin/jobs/schedules")
async def list_schedules(request: Request):
    schedules = await request.app.state.schedule_manager.list()
    return {"schedules": [s.model_dump() for s in schedules]}


@router.post("/admin/jobs/schedules")
async def create_schedule(req: ScheduleCreate, request: Request):
    if not req.name or not req.cron:
        return _bad_request("Missing name or cron")
    created = await request.app.state.schedule_manager.create(
        req.name, req.cron, payload=req.payload, queue=req.queue, retries=req.retries
    )
    return {"ok": True, "schedule": created.model_dump()}


@router.delete("/admin/jobs/schedules/{schedule_id}")
async def delete_schedule(schedule_id: str, request: Request):
    if not schedule_id.strip():
        return _bad_request("Missing schedule id")
    await request.app.state.schedule_manager.delete(schedule_id)
    return {"ok": True}


@router.post("/admin/jobs/cleanup")
async def trigger_cleanup(request: Request):
    client = request.app.state.enqueue_client
    for name in BUILTIN_JOBS:
        await client.enqueue(Job(name=name))
    return {"ok": True}


@router.post("/jobs/cleanup")
async def trigger_kv_cleanup(request: Request):
    client = request.app.state.enqueue_client
    await client.enqueue(Job(name=KV_CLEANUP_MCP))
    await client.enqueue(Job(name=KV_CLEANUP_PKCE))
    return {"ok": True}
