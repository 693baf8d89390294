"""
Queue service: mutations of the email queue.

Every mutation batch ends by reconciling the affected campaigns, which
is how campaign status follows the queue. Reconciliation failures are
not retried here; they propagate to whoever made the mutation.
"""

import logging
from dataclasses import dataclass

from ..database import Database
from ..database.models import CampaignStatus, DBQueueEntry, FROZEN_STATUSES, QueueStatus
from ..exceptions import InvalidTransition, NotFound
from ..reconciler import update_campaign_status

logger = logging.getLogger(__name__)


# Moves the mailer worker may report, keyed by the entry's current status.
# Sent, failed and cancelled entries are out of the worker's hands; failed
# ones only come back through retry_failed().
WORKER_TRANSITIONS: dict[QueueStatus, frozenset[QueueStatus]] = {
    QueueStatus.QUEUED: frozenset({QueueStatus.PROCESSING}),
    QueueStatus.PROCESSING: frozenset({
        QueueStatus.SENT,
        QueueStatus.FAILED,
        QueueStatus.QUEUED,  # put back after a transient failure
    }),
    QueueStatus.SENT: frozenset(),
    QueueStatus.FAILED: frozenset(),
    QueueStatus.CANCELLED: frozenset(),
}

ATTEMPTS_EXHAUSTED = "Maximum delivery attempts reached"


@dataclass
class StatusUpdate:
    """One entry's status change as reported by the worker."""
    entry_id: int
    status: QueueStatus
    error_message: str | None = None


class QueueService:
    """Service for email queue business logic."""

    def __init__(self, db: Database):
        self.db = db

    def _require_campaign(self, campaign_id: int):
        campaign = self.db.get_campaign(campaign_id)
        if campaign is None:
            raise NotFound(f"Campaign {campaign_id} not found")
        return campaign

    def enqueue(
        self,
        campaign_id: int,
        recipients: list[str],
        max_attempts: int = 3,
    ) -> list[int]:
        """
        Queue one entry per new recipient and start the send.

        Recipients already queued for this campaign are skipped, as are
        repeats within the request.

        Returns:
            IDs of the created entries

        Raises:
            NotFound: if the campaign does not exist
            InvalidTransition: if the campaign is paused, cancelled or sent
            ValueError: if a recipient is blank
        """
        campaign = self._require_campaign(campaign_id)
        if campaign.status in FROZEN_STATUSES or campaign.status == CampaignStatus.SENT:
            raise InvalidTransition(
                f"Cannot queue recipients for a {campaign.status.value} campaign"
            )

        existing = self.db.queue.get_recipients(campaign_id)
        new_recipients = []
        for recipient in recipients:
            recipient = recipient.strip()
            if not recipient:
                raise ValueError("Recipient address must not be blank")
            if recipient in existing:
                continue
            existing.add(recipient)
            new_recipients.append(recipient)

        entry_ids = self.db.enqueue_recipients(campaign_id, new_recipients, max_attempts)
        logger.info(f"Queued {len(entry_ids)} emails for campaign {campaign_id}")

        update_campaign_status(self.db, campaign_id)
        return entry_ids

    def report_statuses(self, updates: list[StatusUpdate]) -> set[int]:
        """
        Apply a batch of worker status reports, then reconcile.

        The whole batch is validated before anything is written. Updates
        apply in order, so one batch may carry an entry from queued
        through processing to its outcome.

        An entry out of attempts cannot be picked up again, and putting
        it back in the queue marks it failed instead.

        Returns:
            IDs of the campaigns that were reconciled

        Raises:
            NotFound: if any entry does not exist
            InvalidTransition: if a report does not follow the entry's lifecycle
        """
        entries = self.db.queue.get_many([u.entry_id for u in updates])
        current = {entry_id: (e.status, e.attempt_count) for entry_id, e in entries.items()}

        checked = []
        for update in updates:
            entry = entries.get(update.entry_id)
            if entry is None:
                raise NotFound(f"Queue entry {update.entry_id} not found")

            status, attempts = current[update.entry_id]
            target = QueueStatus(update.status)
            error_message = update.error_message

            if target not in WORKER_TRANSITIONS[status]:
                raise InvalidTransition(
                    f"Queue entry {update.entry_id} cannot go from {status.value} to {target.value}"
                )

            if target == QueueStatus.PROCESSING:
                if attempts >= entry.max_attempts:
                    raise InvalidTransition(
                        f"Queue entry {update.entry_id} has used all {entry.max_attempts} attempts"
                    )
                attempts += 1
            elif target == QueueStatus.QUEUED and attempts >= entry.max_attempts:
                target = QueueStatus.FAILED
                error_message = error_message or ATTEMPTS_EXHAUSTED

            current[update.entry_id] = (target, attempts)
            checked.append(StatusUpdate(update.entry_id, target, error_message))

        campaign_ids = set()
        for update in checked:
            self.db.update_queue_status(update.entry_id, update.status, update.error_message)
            campaign_ids.add(entries[update.entry_id].campaign_id)

        for campaign_id in sorted(campaign_ids):
            update_campaign_status(self.db, campaign_id)

        return campaign_ids

    def cancel_entry(self, entry_id: int):
        """
        Withdraw a single queued email.

        Raises:
            NotFound: if the entry does not exist
            InvalidTransition: if the entry is no longer queued
        """
        entry = self.db.get_queue_entry(entry_id)
        if entry is None:
            raise NotFound(f"Queue entry {entry_id} not found")

        if not self.db.queue.cancel_if_queued(entry_id):
            raise InvalidTransition("Can only cancel queued emails")

        update_campaign_status(self.db, entry.campaign_id)

    def retry_failed(self, campaign_id: int) -> int:
        """Requeue every failed entry of a campaign. Returns the number requeued."""
        self._require_campaign(campaign_id)
        count = self.db.queue.requeue_failed(campaign_id)
        if count:
            logger.info(f"Requeued {count} failed emails for campaign {campaign_id}")
            update_campaign_status(self.db, campaign_id)
        return count

    def entries(self, campaign_id: int) -> list[DBQueueEntry]:
        self._require_campaign(campaign_id)
        return self.db.get_queue_entries(campaign_id)

    def stats(self, campaign_id: int) -> dict[str, int]:
        """Entry counts per queue status plus the total."""
        self._require_campaign(campaign_id)
        counts = self.db.queue.count_by_status(campaign_id)
        counts["total"] = sum(counts.values())
        return counts
