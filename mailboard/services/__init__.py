"""
Service layer for business logic.

Services encapsulate business logic, keeping routes as thin HTTP adapters.
Each service receives its dependencies via constructor injection.

Usage in routes:
    from ..services import QueueServiceDep

    @router.post("/queue/status")
    async def report(request: QueueStatusReport, service: QueueServiceDep):
        return service.report_statuses(...)
"""

from typing import Annotated

from fastapi import Depends

from ..config import get_db
from ..database import Database

from .campaign_service import CampaignService, MANUAL_TRANSITIONS
from .queue_service import QueueService, StatusUpdate, WORKER_TRANSITIONS

__all__ = [
    # Services
    "CampaignService",
    "QueueService",
    "StatusUpdate",
    "MANUAL_TRANSITIONS",
    "WORKER_TRANSITIONS",
    # Dependency factories
    "get_campaign_service",
    "get_queue_service",
    # Type aliases for dependency injection
    "CampaignServiceDep",
    "QueueServiceDep",
]


def get_campaign_service(db: Annotated[Database, Depends(get_db)]) -> CampaignService:
    """Dependency to get CampaignService instance."""
    return CampaignService(db=db)


def get_queue_service(db: Annotated[Database, Depends(get_db)]) -> QueueService:
    """Dependency to get QueueService instance."""
    return QueueService(db=db)


CampaignServiceDep = Annotated[CampaignService, Depends(get_campaign_service)]
QueueServiceDep = Annotated[QueueService, Depends(get_queue_service)]
