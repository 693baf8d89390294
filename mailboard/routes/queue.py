"""
Email queue routes: the mailer worker's status hook and entry cancellation.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..auth import verify_api_key
from ..exceptions import InvalidTransition, NotFound
from ..schemas import QueueStatusReport, QueueStatusReportResponse
from ..services import QueueServiceDep, StatusUpdate

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/queue",
    tags=["queue"],
    dependencies=[Depends(verify_api_key)]
)


@router.post("/status")
async def report_queue_status(
    request: QueueStatusReport,
    service: QueueServiceDep
) -> QueueStatusReportResponse:
    """
    Record a batch of delivery attempts from the mailer worker.

    Every campaign touched by the batch is reconciled afterwards.
    """
    updates = [
        StatusUpdate(entry_id=u.entry_id, status=u.status, error_message=u.error_message)
        for u in request.updates
    ]
    try:
        campaign_ids = service.report_statuses(updates)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidTransition as e:
        raise HTTPException(status_code=400, detail=str(e))

    return QueueStatusReportResponse(
        updated=len(updates),
        campaigns_reconciled=sorted(campaign_ids),
    )


@router.post("/{entry_id}/cancel")
async def cancel_queue_entry(
    entry_id: int,
    service: QueueServiceDep
) -> dict:
    """Withdraw an email that has not been picked up yet."""
    try:
        service.cancel_entry(entry_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Queue entry not found")
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"success": True}
