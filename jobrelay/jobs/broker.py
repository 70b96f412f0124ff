from typing import Dict, Optional

import httpx

from .. import config
from .errors import BrokerConfigError


class BrokerHTTP:
    """Shared plumbing for calls to the QStash REST API."""

    def __init__(
        self,
        token: str = config.QSTASH_TOKEN,
        base_url: str = config.QSTASH_URL,
        app_url: Optional[str] = None,
        timeout: float = config.BROKER_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.app_url = app_url if app_url is not None else config.app_url()
        self.timeout = timeout
        self._transport = transport

    @property
    def destination(self) -> str:
        """Webhook URL the broker delivers jobs to."""
        if not self.app_url:
            raise BrokerConfigError("Missing APP_URL or VERCEL_URL")
        return f"{self.app_url}{config.WEBHOOK_PATH}"

    def headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        )
