"""
Campaign routes: management, sending, queue stats, reconciliation.
"""

from fastapi import APIRouter, Depends, HTTPException

from ..auth import verify_api_key
from ..database.models import CampaignStatus
from ..exceptions import InvalidTransition, NotFound
from ..reconciler import update_campaign_status
from ..schemas import (
    CampaignResponse,
    CreateCampaignRequest,
    UpdateCampaignStatusRequest,
    ReconcileResponse,
    SendCampaignRequest,
    SendCampaignResponse,
    QueueEntryResponse,
    QueueStatsResponse,
    RetryFailedResponse,
)
from ..services import CampaignServiceDep, QueueServiceDep

router = APIRouter(
    prefix="/campaigns",
    tags=["campaigns"],
    dependencies=[Depends(verify_api_key)]
)


# ─────────────────────────────────────────────────────────────
# Campaign Management
# ─────────────────────────────────────────────────────────────

@router.post("")
async def create_campaign(
    request: CreateCampaignRequest,
    service: CampaignServiceDep
) -> CampaignResponse:
    """Create a campaign."""
    campaign = service.create(
        user_id=request.user_id,
        name=request.name,
        settings=request.settings.model_dump(),
        status=request.status,
        scheduled_at=request.scheduled_at,
    )
    return CampaignResponse.from_db(campaign)


@router.get("")
async def list_campaigns(
    service: CampaignServiceDep,
    user_id: str | None = None,
    status: CampaignStatus | None = None
) -> list[CampaignResponse]:
    """List campaigns, newest first."""
    return [CampaignResponse.from_db(c) for c in service.list(user_id, status)]


@router.get("/{campaign_id}")
async def get_campaign(
    campaign_id: int,
    service: CampaignServiceDep
) -> CampaignResponse:
    """Get a single campaign."""
    try:
        return CampaignResponse.from_db(service.get(campaign_id))
    except NotFound:
        raise HTTPException(status_code=404, detail="Campaign not found")


@router.put("/{campaign_id}/status")
async def change_campaign_status(
    campaign_id: int,
    request: UpdateCampaignStatusRequest,
    service: CampaignServiceDep
) -> CampaignResponse:
    """Schedule, pause, resume or cancel a campaign."""
    try:
        campaign = service.change_status(campaign_id, request.status)
    except NotFound:
        raise HTTPException(status_code=404, detail="Campaign not found")
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    return CampaignResponse.from_db(campaign)


# ─────────────────────────────────────────────────────────────
# Sending
# ─────────────────────────────────────────────────────────────

@router.post("/{campaign_id}/send")
async def send_campaign(
    campaign_id: int,
    request: SendCampaignRequest,
    queue: QueueServiceDep,
    campaigns: CampaignServiceDep
) -> SendCampaignResponse:
    """Queue one email per recipient; the mailer worker takes it from there."""
    try:
        entry_ids = queue.enqueue(campaign_id, request.recipients, request.max_attempts)
    except NotFound:
        raise HTTPException(status_code=404, detail="Campaign not found")
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return SendCampaignResponse(
        campaign_id=campaign_id,
        queued=len(entry_ids),
        status=campaigns.get(campaign_id).status,
    )


@router.get("/{campaign_id}/queue")
async def get_queue_stats(
    campaign_id: int,
    queue: QueueServiceDep
) -> QueueStatsResponse:
    """Entry counts per queue status."""
    try:
        stats = queue.stats(campaign_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return QueueStatsResponse(campaign_id=campaign_id, **stats)


@router.get("/{campaign_id}/entries")
async def list_queue_entries(
    campaign_id: int,
    queue: QueueServiceDep
) -> list[QueueEntryResponse]:
    """The campaign's queue entries with their delivery status."""
    try:
        entries = queue.entries(campaign_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return [QueueEntryResponse.from_db(e) for e in entries]


@router.post("/{campaign_id}/retry")
async def retry_failed(
    campaign_id: int,
    queue: QueueServiceDep
) -> RetryFailedResponse:
    """Requeue the campaign's failed emails."""
    try:
        requeued = queue.retry_failed(campaign_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return RetryFailedResponse(campaign_id=campaign_id, requeued=requeued)


@router.post("/{campaign_id}/reconcile")
async def reconcile_campaign(
    campaign_id: int,
    campaigns: CampaignServiceDep
) -> ReconcileResponse:
    """Re-derive the campaign status from its queue."""
    try:
        written = update_campaign_status(campaigns.db, campaign_id)
        campaign = campaigns.get(campaign_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Campaign not found")

    return ReconcileResponse(
        campaign_id=campaign_id,
        status=campaign.status,
        changed=written is not None,
    )
