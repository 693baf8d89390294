"""
Database models - enums and dataclasses for database entities.

All timestamps are epoch milliseconds.
"""

from dataclasses import dataclass, field
from enum import Enum


class CampaignStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENDING = "sending"
    SENT = "sent"
    PAUSED = "paused"
    CANCELLED = "cancelled"


# The reconciler never touches a campaign in one of these states
FROZEN_STATUSES = frozenset({CampaignStatus.PAUSED, CampaignStatus.CANCELLED})


class QueueStatus(str, Enum):
    """Queue-lifecycle state of a single recipient's send attempt."""
    QUEUED = "queued"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"  # withdrawn by the user before dispatch


class DeliveryStatus(str, Enum):
    """Delivery-tracking state used by analytics, separate from QueueStatus."""
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    OPENED = "opened"
    CLICKED = "clicked"
    BOUNCED = "bounced"
    FAILED = "failed"


@dataclass
class DBCampaign:
    id: int
    user_id: str
    name: str
    status: CampaignStatus
    created_at: int
    settings: dict = field(default_factory=dict)
    scheduled_at: int | None = None


@dataclass
class DBQueueEntry:
    id: int
    campaign_id: int
    recipient: str
    status: QueueStatus
    created_at: int
    updated_at: int
    attempt_count: int = 0
    max_attempts: int = 3
    error_message: str | None = None
    last_attempt_at: int | None = None
    sent_at: int | None = None

    @property
    def delivery_status(self) -> DeliveryStatus | None:
        """Where the entry stands for delivery tracking. None once cancelled."""
        return _DELIVERY_BY_QUEUE_STATUS.get(self.status)


# Opens, clicks and bounces come from the mail provider, not from the queue
_DELIVERY_BY_QUEUE_STATUS = {
    QueueStatus.QUEUED: DeliveryStatus.PENDING,
    QueueStatus.PROCESSING: DeliveryStatus.PENDING,
    QueueStatus.SENT: DeliveryStatus.SENT,
    QueueStatus.FAILED: DeliveryStatus.FAILED,
}


@dataclass
class DBOAuthState:
    id: int
    provider: str
    state: str
    redirect_uri: str
    expires_at: int
    used: bool
    created_at: int
    used_at: int | None = None
    user_id: str | None = None  # who requested the authorization URL

    def is_expired(self, now_ms: int) -> bool:
        return now_ms > self.expires_at
