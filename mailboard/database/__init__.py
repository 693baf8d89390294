"""
Database module - SQLite operations for campaigns, the email queue
and OAuth state records.

Uses repository pattern for better separation of concerns.
"""

from .connection import DatabaseConnection, now_ms
from .models import (
    CampaignStatus,
    DeliveryStatus,
    QueueStatus,
    FROZEN_STATUSES,
    DBCampaign,
    DBQueueEntry,
    DBOAuthState,
)
from .campaign_repository import CampaignRepository
from .queue_repository import QueueRepository
from .oauth_state_repository import OAuthStateRepository
from .database import Database

__all__ = [
    "Database",
    "DatabaseConnection",
    "now_ms",
    "CampaignStatus",
    "DeliveryStatus",
    "QueueStatus",
    "FROZEN_STATUSES",
    "DBCampaign",
    "DBQueueEntry",
    "DBOAuthState",
    "CampaignRepository",
    "QueueRepository",
    "OAuthStateRepository",
]
