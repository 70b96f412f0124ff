import os
from typing import Optional

TESTING = os.getenv("TESTING") == "1"
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
API_KEY = os.getenv("API_KEY", "dev-key")

QSTASH_URL = os.getenv("QSTASH_URL", "https://qstash.upstash.io")
QSTASH_TOKEN = os.getenv("QSTASH_TOKEN", "")
QSTASH_CURRENT_SIGNING_KEY = os.getenv("QSTASH_CURRENT_SIGNING_KEY", "")
QSTASH_NEXT_SIGNING_KEY = os.getenv("QSTASH_NEXT_SIGNING_KEY", "")
BROKER_TIMEOUT_SECONDS = float(os.getenv("BROKER_TIMEOUT_SECONDS", "10"))

KV_KEY_PREFIX = os.getenv("KV_KEY_PREFIX", "perfagent")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "json")

WEBHOOK_PATH = "/jobs-webhook"


def app_url() -> Optional[str]:
    """Public base URL of this service, as seen by the broker."""
    url = os.getenv("APP_URL") or os.getenv("VERCEL_URL")
    if not url:
        return None
    url = url.rstrip("/")
    return url if url.startswith("http") else f"https://{url}"
