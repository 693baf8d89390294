"""
Database row converters - convert SQLite rows to dataclasses.
"""

import json
import sqlite3

from .models import (
    CampaignStatus,
    DBCampaign,
    DBOAuthState,
    DBQueueEntry,
    QueueStatus,
)


def row_to_campaign(row: sqlite3.Row) -> DBCampaign:
    """Convert a database row to a DBCampaign."""
    settings = {}
    if row["settings"]:
        try:
            settings = json.loads(row["settings"])
        except json.JSONDecodeError:
            pass

    return DBCampaign(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        status=CampaignStatus(row["status"]),
        created_at=row["created_at"],
        settings=settings,
        scheduled_at=row["scheduled_at"],
    )


def row_to_queue_entry(row: sqlite3.Row) -> DBQueueEntry:
    """Convert a database row to a DBQueueEntry."""
    return DBQueueEntry(
        id=row["id"],
        campaign_id=row["campaign_id"],
        recipient=row["recipient"],
        status=QueueStatus(row["status"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        attempt_count=row["attempt_count"],
        max_attempts=row["max_attempts"],
        error_message=row["error_message"],
        last_attempt_at=row["last_attempt_at"],
        sent_at=row["sent_at"],
    )


def row_to_oauth_state(row: sqlite3.Row) -> DBOAuthState:
    """Convert a database row to a DBOAuthState."""
    return DBOAuthState(
        id=row["id"],
        provider=row["provider"],
        state=row["state"],
        redirect_uri=row["redirect_uri"],
        expires_at=row["expires_at"],
        used=bool(row["used"]),
        created_at=row["created_at"],
        used_at=row["used_at"],
        user_id=row["user_id"],
    )
