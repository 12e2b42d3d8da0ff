"""Optional guard against broker redeliveries of the same envelope.

Disabled unless a positive window is configured. Redis outages let the
envelope through rather than stalling the pipeline.
"""
from __future__ import annotations

import logging

import redis

from sms_common.envelope import Envelope

logger = logging.getLogger(__name__)


class RedeliveryGuard:
    def __init__(
        self,
        redis_url: str,
        window_seconds: int,
        *,
        key_prefix: str = "dedup:sms",
        socket_timeout_seconds: float = 1.0,
    ):
        self.window_seconds = window_seconds
        self.key_prefix = key_prefix
        self._client = None
        if window_seconds > 0:
            self._client = redis.Redis.from_url(
                redis_url,
                decode_responses=True,
                socket_timeout=socket_timeout_seconds,
                socket_connect_timeout=socket_timeout_seconds,
            )

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def _key(self, envelope: Envelope) -> str:
        return f"{self.key_prefix}:mid:{envelope.message_id}"

    def is_duplicate(self, envelope: Envelope) -> bool:
        if not self.enabled or envelope.is_retry:
            return False
        try:
            first_seen = self._client.set(self._key(envelope), "1", nx=True, ex=self.window_seconds)
        except Exception as e:
            logger.exception("Redis dedup check failed (mid=%s): %s", envelope.message_id, e)
            return False
        return not first_seen
