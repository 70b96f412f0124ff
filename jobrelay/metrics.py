from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

# Keep metrics module-level singletons
request_latency_seconds = Histogram("http_request_latency_seconds", "HTTP request latency seconds")

# Broker submissions
jobs_enqueued_total = Counter("jobs_enqueued_total", "Jobs accepted by the broker")
enqueue_errors_total = Counter("enqueue_errors_total", "Job submissions rejected or not delivered to the broker")
schedules_created_total = Counter("schedules_created_total", "Cron schedules created in the broker")

# Webhook dispatch
jobs_dispatched_total = Counter(
    "jobs_dispatched_total", "Webhook dispatches by outcome", ["outcome"]
)
job_execution_seconds = Histogram("job_execution_seconds", "Job handler execution time seconds")

# Cache
kv_errors_total = Counter("kv_errors_total", "Swallowed cache failures", ["operation"])


def metrics_response():
    # Return prometheus metrics as a Response
    payload = generate_latest()
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
