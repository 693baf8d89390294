"""
Database facade - provides unified access to all repositories.
"""

from pathlib import Path

from .connection import DatabaseConnection
from .campaign_repository import CampaignRepository
from .queue_repository import QueueRepository
from .oauth_state_repository import OAuthStateRepository
from .models import CampaignStatus, DBCampaign, DBQueueEntry, QueueStatus


class Database:
    """
    Unified database access facade.

    Repositories are exposed as attributes; the most common calls are
    also available directly on the facade.
    """

    def __init__(self, db_path: Path):
        self._connection = DatabaseConnection(db_path)

        # Initialize repositories
        self.campaigns = CampaignRepository(self._connection)
        self.queue = QueueRepository(self._connection)
        self.oauth_states = OAuthStateRepository(self._connection)

    # ─────────────────────────────────────────────────────────────
    # Campaign operations (delegated to CampaignRepository)
    # ─────────────────────────────────────────────────────────────

    def add_campaign(
        self,
        user_id: str,
        name: str,
        settings: dict,
        status: CampaignStatus = CampaignStatus.DRAFT,
        scheduled_at: int | None = None,
    ) -> int:
        return self.campaigns.add(user_id, name, settings, status, scheduled_at)

    def get_campaign(self, campaign_id: int) -> DBCampaign | None:
        return self.campaigns.get(campaign_id)

    def get_campaigns(
        self,
        user_id: str | None = None,
        status: CampaignStatus | None = None,
    ) -> list[DBCampaign]:
        return self.campaigns.get_all(user_id, status)

    def set_campaign_status(self, campaign_id: int, status: CampaignStatus):
        return self.campaigns.update_status(campaign_id, status)

    # ─────────────────────────────────────────────────────────────
    # Queue operations (delegated to QueueRepository)
    # ─────────────────────────────────────────────────────────────

    def enqueue_recipients(
        self,
        campaign_id: int,
        recipients: list[str],
        max_attempts: int = 3,
    ) -> list[int]:
        return self.queue.add_many(campaign_id, recipients, max_attempts)

    def get_queue_entry(self, entry_id: int) -> DBQueueEntry | None:
        return self.queue.get(entry_id)

    def get_queue_entries(self, campaign_id: int) -> list[DBQueueEntry]:
        return self.queue.get_for_campaign(campaign_id)

    def get_queue_statuses(self, campaign_id: int) -> list[QueueStatus]:
        return self.queue.get_statuses(campaign_id)

    def update_queue_status(
        self,
        entry_id: int,
        status: QueueStatus,
        error_message: str | None = None,
    ):
        return self.queue.update_status(entry_id, status, error_message)
