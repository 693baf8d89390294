"""
Campaign service: business logic for campaign management.

Manual status changes (schedule, pause, resume, cancel) go through a
transition table; everything else about a campaign's status is left
to the reconciler.
"""

import logging

from ..database import Database
from ..database.models import CampaignStatus, DBCampaign, FROZEN_STATUSES
from ..exceptions import InvalidTransition, NotFound
from ..reconciler import update_campaign_status

logger = logging.getLogger(__name__)


# Status changes a user may request directly
MANUAL_TRANSITIONS: dict[CampaignStatus, frozenset[CampaignStatus]] = {
    CampaignStatus.DRAFT: frozenset({CampaignStatus.SCHEDULED, CampaignStatus.CANCELLED}),
    CampaignStatus.SCHEDULED: frozenset({
        CampaignStatus.DRAFT, CampaignStatus.PAUSED, CampaignStatus.CANCELLED,
    }),
    CampaignStatus.SENDING: frozenset({CampaignStatus.PAUSED, CampaignStatus.CANCELLED}),
    CampaignStatus.PAUSED: frozenset({
        CampaignStatus.SCHEDULED, CampaignStatus.SENDING, CampaignStatus.CANCELLED,
    }),
    CampaignStatus.SENT: frozenset(),
    CampaignStatus.CANCELLED: frozenset(),
}


class CampaignService:
    """Service for campaign-related business logic."""

    def __init__(self, db: Database):
        self.db = db

    def create(
        self,
        user_id: str,
        name: str,
        settings: dict,
        status: CampaignStatus = CampaignStatus.DRAFT,
        scheduled_at: int | None = None,
    ) -> DBCampaign:
        campaign_id = self.db.add_campaign(user_id, name, settings, status, scheduled_at)
        logger.info(f"Created campaign {campaign_id} for user {user_id}")
        return self.get(campaign_id)

    def get(self, campaign_id: int) -> DBCampaign:
        """
        Raises:
            NotFound: if the campaign does not exist
        """
        campaign = self.db.get_campaign(campaign_id)
        if campaign is None:
            raise NotFound(f"Campaign {campaign_id} not found")
        return campaign

    def list(
        self,
        user_id: str | None = None,
        status: CampaignStatus | None = None,
    ) -> list[DBCampaign]:
        return self.db.get_campaigns(user_id, status)

    def change_status(self, campaign_id: int, status: CampaignStatus) -> DBCampaign:
        """
        Apply a user-requested status change.

        Leaving a frozen state hands the campaign back to the reconciler,
        so resuming a drained campaign lands on "sent" straight away.

        Raises:
            NotFound: if the campaign does not exist
            InvalidTransition: if the change is not allowed from the current status
        """
        campaign = self.get(campaign_id)
        status = CampaignStatus(status)

        if status == campaign.status:
            return campaign

        if status not in MANUAL_TRANSITIONS[campaign.status]:
            raise InvalidTransition(
                f"Cannot change campaign from {campaign.status.value} to {status.value}"
            )

        self.db.set_campaign_status(campaign_id, status)
        logger.info(f"Campaign {campaign_id} manually moved {campaign.status.value} -> {status.value}")

        if status not in FROZEN_STATUSES:
            update_campaign_status(self.db, campaign_id)

        return self.get(campaign_id)
