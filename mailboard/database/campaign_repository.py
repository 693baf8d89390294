"""
Campaign repository - CRUD operations for campaigns.
"""

import json

from .connection import DatabaseConnection, now_ms
from .converters import row_to_campaign
from .models import CampaignStatus, DBCampaign


class CampaignRepository:
    """Repository for campaign operations."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def add(
        self,
        user_id: str,
        name: str,
        settings: dict,
        status: CampaignStatus = CampaignStatus.DRAFT,
        scheduled_at: int | None = None,
    ) -> int:
        """Create a campaign. Returns campaign ID."""
        with self._db.conn() as conn:
            cursor = conn.execute(
                """INSERT INTO campaigns
                   (user_id, name, status, scheduled_at, settings, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (user_id, name, CampaignStatus(status).value, scheduled_at,
                 json.dumps(settings), now_ms())
            )
            return cursor.lastrowid

    def get(self, campaign_id: int) -> DBCampaign | None:
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT * FROM campaigns WHERE id = ?", (campaign_id,)
            ).fetchone()
            return row_to_campaign(row) if row else None

    def get_all(
        self,
        user_id: str | None = None,
        status: CampaignStatus | None = None,
    ) -> list[DBCampaign]:
        """List campaigns, newest first, optionally filtered by owner and status."""
        conditions = []
        params: list = []

        if user_id is not None:
            conditions.append("user_id = ?")
            params.append(user_id)
        if status is not None:
            conditions.append("status = ?")
            params.append(CampaignStatus(status).value)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        with self._db.conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM campaigns {where} ORDER BY created_at DESC, id DESC",
                params
            ).fetchall()
            return [row_to_campaign(row) for row in rows]

    def update_status(self, campaign_id: int, status: CampaignStatus):
        """Overwrite the campaign status (last write wins)."""
        with self._db.conn() as conn:
            conn.execute(
                "UPDATE campaigns SET status = ? WHERE id = ?",
                (CampaignStatus(status).value, campaign_id)
            )

    def delete(self, campaign_id: int):
        with self._db.conn() as conn:
            conn.execute("DELETE FROM campaigns WHERE id = ?", (campaign_id,))
