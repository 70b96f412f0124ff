import time
from typing import Any, Dict, Optional

import httpx

from .. import metrics
from ..logging_config import get_logger
from ..schemas import EnqueueOptions, Job
from .broker import BrokerHTTP
from .errors import EnqueueError
from .registry import KV_CLEANUP_MCP

logger = get_logger(__name__)


def option_headers(options: EnqueueOptions) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    if options.delay:
        headers["Upstash-Delay"] = f"{options.delay}s"
    if options.not_before:
        headers["Upstash-Not-Before"] = str(options.not_before)
    if options.deduplication_id:
        headers["Upstash-Deduplication-Id"] = options.deduplication_id
    if options.retries is not None:
        headers["Upstash-Retries"] = str(options.retries)
    return headers


class EnqueueClient(BrokerHTTP):
    """Publishes jobs to the broker, which later POSTs them to the webhook."""

    async def enqueue(self, job: Job, options: Optional[EnqueueOptions] = None) -> Dict[str, Any]:
        """Hand ``job`` to the broker and return its acknowledgement.

        Returns once the broker has accepted the message, not when the job
        has run. Raises EnqueueError when the broker cannot be reached or
        rejects the request.
        """
        options = options or EnqueueOptions()
        destination = self.destination
        if options.queue:
            path = f"/v2/enqueue/{options.queue}/{destination}"
        else:
            path = f"/v2/publish/{destination}"

        start = time.time()
        try:
            async with self.client() as http:
                response = await http.post(
                    path,
                    json=job.model_dump(),
                    headers=self.headers(option_headers(options)),
                )
        except httpx.HTTPError as exc:
            metrics.enqueue_errors_total.inc()
            logger.error("enqueue_transport_failed", job=job.name, error=str(exc))
            raise EnqueueError(f"Broker unreachable while enqueueing {job.name}") from exc

        if response.is_error:
            metrics.enqueue_errors_total.inc()
            logger.error(
                "enqueue_rejected",
                job=job.name,
                status=response.status_code,
                body=response.text,
            )
            raise EnqueueError(f"Broker rejected {job.name}: {response.status_code}")

        metrics.jobs_enqueued_total.inc()
        ack = response.json()
        logger.info(
            "job_enqueued",
            job=job.name,
            queue=options.queue,
            message_id=ack.get("messageId") if isinstance(ack, dict) else None,
            elapsed=round(time.time() - start, 4),
        )
        return ack


async def enqueue_recurring_cleanup(client: EnqueueClient) -> Dict[str, Any]:
    """Run the MCP cache sweep once, five minutes from now."""
    return await client.enqueue(Job(name=KV_CLEANUP_MCP), EnqueueOptions(delay=300))
