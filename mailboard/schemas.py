"""
Pydantic models for API request/response validation.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .database.models import (
    CampaignStatus,
    DBCampaign,
    DBQueueEntry,
    DeliveryStatus,
    QueueStatus,
)


# ─────────────────────────────────────────────────────────────
# Campaign Schemas
# ─────────────────────────────────────────────────────────────

class CampaignSettings(BaseModel):
    """Content and targeting of a campaign."""
    subject: str
    template_id: str | None = None
    custom_content: str | None = None
    target_tags: list[str] = Field(default_factory=list)
    send_delay: int | None = None  # ms between sends
    track_opens: bool = True
    track_clicks: bool = True


class CreateCampaignRequest(BaseModel):
    user_id: str
    name: str = Field(min_length=1)
    settings: CampaignSettings
    status: CampaignStatus = CampaignStatus.DRAFT
    scheduled_at: int | None = None  # epoch ms


class UpdateCampaignStatusRequest(BaseModel):
    status: CampaignStatus


class CampaignResponse(BaseModel):
    id: int
    user_id: str
    name: str
    status: CampaignStatus
    scheduled_at: int | None
    created_at: int
    settings: CampaignSettings

    @classmethod
    def from_db(cls, campaign: DBCampaign) -> "CampaignResponse":
        return cls(
            id=campaign.id,
            user_id=campaign.user_id,
            name=campaign.name,
            status=campaign.status,
            scheduled_at=campaign.scheduled_at,
            created_at=campaign.created_at,
            settings=CampaignSettings(**campaign.settings),
        )


class ReconcileResponse(BaseModel):
    """Result of a reconciliation run."""
    campaign_id: int
    status: CampaignStatus
    changed: bool


# ─────────────────────────────────────────────────────────────
# Queue Schemas
# ─────────────────────────────────────────────────────────────

class SendCampaignRequest(BaseModel):
    recipients: list[str] = Field(min_length=1)
    max_attempts: int = Field(default=3, ge=1, le=10)


class SendCampaignResponse(BaseModel):
    campaign_id: int
    queued: int
    status: CampaignStatus


class QueueStatusUpdate(BaseModel):
    entry_id: int
    status: QueueStatus
    error_message: str | None = None


class QueueStatusReport(BaseModel):
    """A batch of status changes from the mailer worker."""
    updates: list[QueueStatusUpdate] = Field(min_length=1)


class QueueStatusReportResponse(BaseModel):
    updated: int
    campaigns_reconciled: list[int]


class QueueStatsResponse(BaseModel):
    campaign_id: int
    total: int
    queued: int
    processing: int
    sent: int
    failed: int
    cancelled: int


class QueueEntryResponse(BaseModel):
    id: int
    recipient: str
    status: QueueStatus
    delivery_status: DeliveryStatus | None
    attempt_count: int
    max_attempts: int
    error_message: str | None
    last_attempt_at: int | None
    sent_at: int | None

    @classmethod
    def from_db(cls, entry: DBQueueEntry) -> "QueueEntryResponse":
        return cls(
            id=entry.id,
            recipient=entry.recipient,
            status=entry.status,
            delivery_status=entry.delivery_status,
            attempt_count=entry.attempt_count,
            max_attempts=entry.max_attempts,
            error_message=entry.error_message,
            last_attempt_at=entry.last_attempt_at,
            sent_at=entry.sent_at,
        )


class RetryFailedResponse(BaseModel):
    campaign_id: int
    requeued: int


# ─────────────────────────────────────────────────────────────
# Google OAuth Schemas (camelCase on the wire)
# ─────────────────────────────────────────────────────────────

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GoogleAuthURLResponse(CamelModel):
    url: str
    state: str


class TokenExchangeRequest(CamelModel):
    code: str | None = None
    state: str | None = None


class TokenExchangeResponse(CamelModel):
    access_token: str
    refresh_token: str | None = None
    expires_in: int
    token_type: str


class TokenRefreshRequest(CamelModel):
    refresh_token: str | None = None


class TokenRefreshResponse(CamelModel):
    access_token: str
    expires_in: int
    scope: str
    token_type: str


class TokenStatusRequest(CamelModel):
    access_token: str | None = None
    refresh_token: str | None = None


class TokenStatusResponse(CamelModel):
    is_valid: bool
    has_refresh_token: bool
    can_refresh: bool


class AccessTokenRequest(CamelModel):
    user_id: str | None = None
    refresh_token: str | None = None


class AccessTokenResponse(CamelModel):
    access_token: str
    from_cache: bool
