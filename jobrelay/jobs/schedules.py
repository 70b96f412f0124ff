import json
from typing import Any, Dict, List, Optional

import httpx

from .. import metrics
from ..logging_config import get_logger
from ..schemas import Job, Schedule
from .broker import BrokerHTTP
from .errors import InvalidScheduleError, ScheduleError

logger = get_logger(__name__)


def _decode_body(body: Any) -> Optional[Job]:
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except ValueError:
            return None
    if isinstance(body, dict) and isinstance(body.get("name"), str):
        return Job(name=body["name"], payload=body.get("payload"))
    return None


def schedule_from_broker(item: Dict[str, Any]) -> Schedule:
    job = _decode_body(item.get("body"))
    return Schedule(
        id=item["scheduleId"],
        name=job.name if job else None,
        cron=item.get("cron", ""),
        payload=job.payload if job else None,
        queue=item.get("queueName"),
        retries=item.get("retries"),
        destination=item.get("destination"),
        created_at=item.get("createdAt"),
        paused=bool(item.get("isPaused", False)),
    )


class ScheduleManager(BrokerHTTP):
    """Keeps the broker's cron schedules in line with what the app wants.

    The broker parses the cron expression and fires the webhook; this class
    only creates, lists and deletes the definitions.
    """

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            async with self.client() as http:
                response = await http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("schedule_transport_failed", method=method, path=path, error=str(exc))
            raise ScheduleError(f"Broker unreachable: {method} {path}") from exc
        if response.is_error:
            logger.error(
                "schedule_request_rejected",
                method=method,
                path=path,
                status=response.status_code,
                body=response.text,
            )
            raise ScheduleError(f"Broker rejected {method} {path}: {response.status_code}")
        return response

    async def create(
        self,
        name: Optional[str],
        cron: Optional[str],
        payload: Any = None,
        queue: Optional[str] = None,
        retries: Optional[int] = None,
    ) -> Schedule:
        if not name or not cron:
            raise InvalidScheduleError("Missing name or cron")

        destination = self.destination
        extra = {"Upstash-Cron": cron}
        if retries is not None:
            extra["Upstash-Retries"] = str(retries)
        if queue:
            extra["Upstash-Queue-Name"] = queue

        job = Job(name=name, payload=payload)
        response = await self._request(
            "POST",
            f"/v2/schedules/{destination}",
            json=job.model_dump(),
            headers=self.headers(extra),
        )
        schedule_id = response.json()["scheduleId"]
        metrics.schedules_created_total.inc()
        logger.info("schedule_created", schedule_id=schedule_id, job=name, cron=cron)
        return Schedule(
            id=schedule_id,
            name=name,
            cron=cron,
            payload=payload,
            queue=queue,
            retries=retries,
            destination=destination,
        )

    async def list(self) -> List[Schedule]:
        response = await self._request("GET", "/v2/schedules", headers=self.headers())
        return [schedule_from_broker(item) for item in response.json()]

    async def delete(self, schedule_id: str) -> None:
        if not schedule_id or not schedule_id.strip():
            raise InvalidScheduleError("Missing schedule id")
        await self._request("DELETE", f"/v2/schedules/{schedule_id}", headers=self.headers())
        logger.info("schedule_deleted", schedule_id=schedule_id)

    async def replace(
        self,
        schedule_id: str,
        name: Optional[str],
        cron: Optional[str],
        payload: Any = None,
        queue: Optional[str] = None,
        retries: Optional[int] = None,
    ) -> Schedule:
        """Schedules are not versioned: an update is a delete followed by a create."""
        if not name or not cron:
            raise InvalidScheduleError("Missing name or cron")
        await self.delete(schedule_id)
        return await self.create(name, cron, payload, queue, retries)
