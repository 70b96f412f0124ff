import json
import time
from dataclasses import dataclass
from typing import Any, Dict

from .. import metrics
from ..logging_config import get_logger
from .registry import JobRegistry

logger = get_logger(__name__)


@dataclass
class DispatchOutcome:
    status_code: int
    body: Dict[str, Any]


class Dispatcher:
    """Runs a verified broker delivery against the job registry.

    Status codes tell the broker what to do next: 400 is permanent (bad body
    or unknown job, never retried usefully), 500 means the handler failed
    and the broker may redeliver. Retrying is left entirely to the broker.
    """

    def __init__(self, registry: JobRegistry):
        self.registry = registry

    def _reject(self, message: str, outcome: str) -> DispatchOutcome:
        metrics.jobs_dispatched_total.labels(outcome=outcome).inc()
        return DispatchOutcome(400, {"error": message})

    async def dispatch(self, raw_body: bytes) -> DispatchOutcome:
        try:
            body = json.loads(raw_body)
        except ValueError:
            body = None

        if not isinstance(body, dict) or not isinstance(body.get("name"), str):
            logger.warning("dispatch_invalid_payload")
            return self._reject("Invalid job payload", "invalid")

        name = body["name"]
        handler = self.registry.lookup(name)
        if handler is None:
            logger.warning("dispatch_unknown_job", job=name)
            return self._reject(f"Unknown job: {name}", "unknown")

        start = time.time()
        try:
            result = await handler(body.get("payload"))
        except Exception:
            metrics.jobs_dispatched_total.labels(outcome="failed").inc()
            logger.exception("job_execution_failed", job=name)
            return DispatchOutcome(500, {"error": "Job execution failed"})
        finally:
            metrics.job_execution_seconds.observe(time.time() - start)

        metrics.jobs_dispatched_total.labels(outcome="ok").inc()
        logger.info("job_executed", job=name, elapsed=round(time.time() - start, 4))
        return DispatchOutcome(200, {"ok": True, "name": name, "result": result})
