import logging
import random
from datetime import datetime

from sms_common.envelope import FAILURE_REASONS, DeliveryReport, Envelope
from sms_common.status import MessageStatus

logger = logging.getLogger(__name__)


class DeliverySimulator:
    """Stands in for an SMS provider: random latency, random outcome."""

    def __init__(
        self,
        min_delay_ms: int = 500,
        max_delay_ms: int = 2000,
        success_rate: float = 0.8,
        rng: random.Random | None = None,
    ):
        if min_delay_ms < 0 or max_delay_ms < min_delay_ms:
            raise ValueError(f"invalid delay range [{min_delay_ms}, {max_delay_ms}] ms")
        self.min_delay_ms = min_delay_ms
        self.max_delay_ms = max_delay_ms
        self.success_rate = max(0.0, min(1.0, success_rate))
        self.rng = rng or random.Random()

    def draw_delay_seconds(self) -> float:
        return self.rng.randint(self.min_delay_ms, self.max_delay_ms) / 1000.0

    def draw_outcome(self, envelope: Envelope) -> DeliveryReport:
        processed_at = datetime.now().isoformat()
        if self.rng.random() < self.success_rate:
            return DeliveryReport(
                message_id=envelope.message_id,
                status=MessageStatus.SENT,
                processed_at=processed_at,
            )
        return DeliveryReport(
            message_id=envelope.message_id,
            status=MessageStatus.FAILED,
            failure_reason=self.rng.choice(FAILURE_REASONS),
            processed_at=processed_at,
        )
