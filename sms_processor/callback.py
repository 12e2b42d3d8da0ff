import logging
from typing import Protocol

import httpx

from sms_common.envelope import DeliveryReport

logger = logging.getLogger(__name__)


class CallbackDeliveryError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CallbackInvoker(Protocol):
    def send(self, report: DeliveryReport) -> None: ...


class HttpCallbackInvoker:
    """POSTs delivery reports to the SMS service. One attempt, no retry."""

    def __init__(self, url: str, timeout: float = 10.0, client: httpx.Client | None = None):
        self.url = url
        self._client = client or httpx.Client(timeout=timeout)

    def send(self, report: DeliveryReport) -> None:
        try:
            r = self._client.post(self.url, json=report.to_payload())
        except httpx.HTTPError as e:
            raise CallbackDeliveryError(f"delivery report request failed: {e}") from e
        if r.is_error:
            raise CallbackDeliveryError(
                f"delivery report rejected with HTTP {r.status_code}: {r.text[:200]}",
                status_code=r.status_code,
            )

    def close(self) -> None:
        self._client.close()
