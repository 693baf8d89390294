"""
Email queue repository - per-recipient send attempts.
"""

from .connection import DatabaseConnection, now_ms
from .converters import row_to_queue_entry
from .models import DBQueueEntry, QueueStatus


class QueueRepository:
    """Repository for email queue entries."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def add_many(
        self,
        campaign_id: int,
        recipients: list[str],
        max_attempts: int = 3,
    ) -> list[int]:
        """Bulk-create queued entries for a campaign. Returns entry IDs."""
        timestamp = now_ms()
        ids = []
        with self._db.conn() as conn:
            for recipient in recipients:
                cursor = conn.execute(
                    """INSERT INTO email_queue
                       (campaign_id, recipient, status, max_attempts, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (campaign_id, recipient, QueueStatus.QUEUED.value,
                     max_attempts, timestamp, timestamp)
                )
                ids.append(cursor.lastrowid)
        return ids

    def get(self, entry_id: int) -> DBQueueEntry | None:
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT * FROM email_queue WHERE id = ?", (entry_id,)
            ).fetchone()
            return row_to_queue_entry(row) if row else None

    def get_many(self, entry_ids: list[int]) -> dict[int, DBQueueEntry]:
        if not entry_ids:
            return {}
        placeholders = ",".join("?" * len(entry_ids))
        with self._db.conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM email_queue WHERE id IN ({placeholders})",
                list(entry_ids)
            ).fetchall()
            return {row["id"]: row_to_queue_entry(row) for row in rows}

    def get_for_campaign(self, campaign_id: int) -> list[DBQueueEntry]:
        with self._db.conn() as conn:
            rows = conn.execute(
                "SELECT * FROM email_queue WHERE campaign_id = ? ORDER BY id",
                (campaign_id,)
            ).fetchall()
            return [row_to_queue_entry(row) for row in rows]

    def get_statuses(self, campaign_id: int) -> list[QueueStatus]:
        """Status of every entry belonging to a campaign."""
        with self._db.conn() as conn:
            rows = conn.execute(
                "SELECT status FROM email_queue WHERE campaign_id = ?",
                (campaign_id,)
            ).fetchall()
            return [QueueStatus(row["status"]) for row in rows]

    def get_recipients(self, campaign_id: int) -> set[str]:
        with self._db.conn() as conn:
            rows = conn.execute(
                "SELECT recipient FROM email_queue WHERE campaign_id = ?",
                (campaign_id,)
            ).fetchall()
            return {row["recipient"] for row in rows}

    def count_by_status(self, campaign_id: int) -> dict[str, int]:
        """Entry counts per queue status, zero-filled."""
        counts = {status.value: 0 for status in QueueStatus}
        with self._db.conn() as conn:
            rows = conn.execute(
                """SELECT status, COUNT(*) AS n FROM email_queue
                   WHERE campaign_id = ? GROUP BY status""",
                (campaign_id,)
            ).fetchall()
            for row in rows:
                counts[row["status"]] = row["n"]
        return counts

    def update_status(
        self,
        entry_id: int,
        status: QueueStatus,
        error_message: str | None = None,
    ):
        """Record a status change reported by the mailer worker."""
        status = QueueStatus(status)
        timestamp = now_ms()
        updates = ["status = ?", "updated_at = ?"]
        params: list = [status.value, timestamp]

        if status == QueueStatus.PROCESSING:
            updates.append("attempt_count = attempt_count + 1")
            updates.append("last_attempt_at = ?")
            params.append(timestamp)
        elif status == QueueStatus.SENT:
            updates.append("sent_at = ?")
            updates.append("error_message = NULL")
            params.append(timestamp)
        elif status == QueueStatus.FAILED:
            updates.append("error_message = ?")
            params.append(error_message)

        params.append(entry_id)
        with self._db.conn() as conn:
            conn.execute(
                f"UPDATE email_queue SET {', '.join(updates)} WHERE id = ?",
                params
            )

    def cancel_if_queued(self, entry_id: int) -> bool:
        """Cancel an entry that has not been picked up yet. Returns True if cancelled."""
        with self._db.conn() as conn:
            cursor = conn.execute(
                "UPDATE email_queue SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
                (QueueStatus.CANCELLED.value, now_ms(), entry_id, QueueStatus.QUEUED.value)
            )
            return cursor.rowcount == 1

    def requeue_failed(self, campaign_id: int) -> int:
        """Reset failed entries to queued with a fresh attempt budget. Returns count."""
        with self._db.conn() as conn:
            cursor = conn.execute(
                """UPDATE email_queue
                   SET status = ?, attempt_count = 0, error_message = NULL, updated_at = ?
                   WHERE campaign_id = ? AND status = ?""",
                (QueueStatus.QUEUED.value, now_ms(), campaign_id, QueueStatus.FAILED.value)
            )
            return cursor.rowcount
