"""
OAuth state repository - one-time state nonces for authorization requests.
"""

from .connection import DatabaseConnection, now_ms
from .converters import row_to_oauth_state
from .models import DBOAuthState


class OAuthStateRepository:
    """Repository for persisted OAuth state records."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def add(
        self,
        provider: str,
        state: str,
        redirect_uri: str,
        expires_at: int,
        user_id: str | None = None,
        created_at: int | None = None,
    ) -> int:
        """Store a freshly issued state. Returns record ID."""
        with self._db.conn() as conn:
            cursor = conn.execute(
                """INSERT INTO oauth_states
                   (provider, state, redirect_uri, expires_at, used, created_at, user_id)
                   VALUES (?, ?, ?, ?, 0, ?, ?)""",
                (provider, state, redirect_uri, expires_at,
                 created_at if created_at is not None else now_ms(), user_id)
            )
            return cursor.lastrowid

    def get(self, state: str, provider: str) -> DBOAuthState | None:
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT * FROM oauth_states WHERE state = ? AND provider = ?",
                (state, provider)
            ).fetchone()
            return row_to_oauth_state(row) if row else None

    def mark_used(self, record_id: int, used_at: int | None = None) -> bool:
        """
        Flip the one-time-use flag.

        Only succeeds for a record that is still unused, so of two
        concurrent callbacks carrying the same state exactly one wins.
        """
        with self._db.conn() as conn:
            cursor = conn.execute(
                "UPDATE oauth_states SET used = 1, used_at = ? WHERE id = ? AND used = 0",
                (used_at if used_at is not None else now_ms(), record_id)
            )
            return cursor.rowcount == 1

    def delete_expired(self, now: int | None = None) -> int:
        """Garbage-collect records past their expiry. Returns count deleted."""
        with self._db.conn() as conn:
            cursor = conn.execute(
                "DELETE FROM oauth_states WHERE expires_at < ?",
                (now if now is not None else now_ms(),)
            )
            return cursor.rowcount
