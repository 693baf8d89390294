"""
Tests for queue mutations and the campaign service.
"""

import pytest

from mailboard.database.models import CampaignStatus, DeliveryStatus, QueueStatus
from mailboard.exceptions import InvalidTransition, NotFound
from mailboard.services import CampaignService, QueueService, StatusUpdate
from mailboard.services.queue_service import ATTEMPTS_EXHAUSTED


@pytest.fixture
def queue(test_db):
    return QueueService(test_db)


@pytest.fixture
def campaigns(test_db):
    return CampaignService(test_db)


def attempt(entry_id: int, outcome: QueueStatus, error: str | None = None) -> list[StatusUpdate]:
    """A worker pickup followed by its outcome."""
    return [
        StatusUpdate(entry_id, QueueStatus.PROCESSING),
        StatusUpdate(entry_id, outcome, error),
    ]


class TestEnqueue:
    """Tests for queueing a campaign's recipients."""

    def test_creates_queued_entries_and_starts_sending(self, test_db, queue, campaign_id):
        ids = queue.enqueue(campaign_id, ["a@example.com", "b@example.com"])

        assert len(ids) == 2
        entries = test_db.get_queue_entries(campaign_id)
        assert {e.status for e in entries} == {QueueStatus.QUEUED}
        assert all(e.attempt_count == 0 and e.max_attempts == 3 for e in entries)
        assert test_db.get_campaign(campaign_id).status == CampaignStatus.SENDING

    def test_skips_duplicate_recipients(self, test_db, queue, campaign_id):
        queue.enqueue(campaign_id, ["a@example.com", " a@example.com ", "b@example.com"])
        ids = queue.enqueue(campaign_id, ["b@example.com", "c@example.com"])

        assert len(ids) == 1
        recipients = [e.recipient for e in test_db.get_queue_entries(campaign_id)]
        assert recipients == ["a@example.com", "b@example.com", "c@example.com"]

    def test_rejects_blank_recipient(self, queue, campaign_id):
        with pytest.raises(ValueError):
            queue.enqueue(campaign_id, ["a@example.com", "   "])

    def test_unknown_campaign(self, queue):
        with pytest.raises(NotFound):
            queue.enqueue(42, ["a@example.com"])

    @pytest.mark.parametrize("status", [
        CampaignStatus.PAUSED, CampaignStatus.CANCELLED, CampaignStatus.SENT,
    ])
    def test_refuses_closed_campaigns(self, test_db, queue, campaign_id, status):
        test_db.set_campaign_status(campaign_id, status)
        with pytest.raises(InvalidTransition):
            queue.enqueue(campaign_id, ["a@example.com"])


class TestReportStatuses:
    """Tests for the worker's status hook."""

    def test_processing_counts_an_attempt(self, test_db, queue, campaign_id):
        [entry_id] = queue.enqueue(campaign_id, ["a@example.com"])

        queue.report_statuses([StatusUpdate(entry_id, QueueStatus.PROCESSING)])

        entry = test_db.get_queue_entry(entry_id)
        assert entry.status == QueueStatus.PROCESSING
        assert entry.attempt_count == 1
        assert entry.last_attempt_at is not None

    def test_sent_and_failed_drain_campaign(self, test_db, queue, campaign_id):
        a, b = queue.enqueue(campaign_id, ["a@example.com", "b@example.com"])

        reconciled = queue.report_statuses(
            attempt(a, QueueStatus.SENT)
            + attempt(b, QueueStatus.FAILED, "550 mailbox unavailable")
        )

        assert reconciled == {campaign_id}
        assert test_db.get_queue_entry(a).sent_at is not None
        assert test_db.get_queue_entry(b).error_message == "550 mailbox unavailable"
        assert test_db.get_campaign(campaign_id).status == CampaignStatus.SENT

    def test_reconciles_every_campaign_in_batch(self, test_db, queue, campaign_id):
        other = test_db.add_campaign("user_123", "Other", {"subject": "Hi"})
        [a] = queue.enqueue(campaign_id, ["a@example.com"])
        [b] = queue.enqueue(other, ["b@example.com"])

        reconciled = queue.report_statuses(
            attempt(a, QueueStatus.SENT) + [StatusUpdate(b, QueueStatus.PROCESSING)]
        )

        assert reconciled == {campaign_id, other}
        assert test_db.get_campaign(campaign_id).status == CampaignStatus.SENT
        assert test_db.get_campaign(other).status == CampaignStatus.SENDING

    def test_unknown_entry_aborts_whole_batch(self, test_db, queue, campaign_id):
        [a] = queue.enqueue(campaign_id, ["a@example.com"])

        with pytest.raises(NotFound):
            queue.report_statuses([
                StatusUpdate(a, QueueStatus.PROCESSING),
                StatusUpdate(9999, QueueStatus.PROCESSING),
            ])

        assert test_db.get_queue_entry(a).status == QueueStatus.QUEUED

    def test_worker_cannot_cancel(self, queue, campaign_id):
        [a] = queue.enqueue(campaign_id, ["a@example.com"])
        with pytest.raises(InvalidTransition):
            queue.report_statuses([StatusUpdate(a, QueueStatus.CANCELLED)])

    def test_paused_campaign_keeps_status(self, test_db, queue, campaign_id):
        [a] = queue.enqueue(campaign_id, ["a@example.com"])
        test_db.set_campaign_status(campaign_id, CampaignStatus.PAUSED)

        queue.report_statuses(attempt(a, QueueStatus.SENT))

        assert test_db.get_campaign(campaign_id).status == CampaignStatus.PAUSED


class TestEntryLifecycle:
    """Tests for which reports the worker may make about an entry."""

    def test_queued_entry_must_be_picked_up_first(self, test_db, queue, campaign_id):
        [a] = queue.enqueue(campaign_id, ["a@example.com"])

        with pytest.raises(InvalidTransition, match="queued to sent"):
            queue.report_statuses([StatusUpdate(a, QueueStatus.SENT)])

        assert test_db.get_queue_entry(a).status == QueueStatus.QUEUED

    def test_cancelled_entry_cannot_be_picked_up(self, test_db, queue, campaign_id):
        a, b = queue.enqueue(campaign_id, ["a@example.com", "b@example.com"])
        queue.report_statuses(attempt(a, QueueStatus.SENT))
        queue.cancel_entry(b)

        with pytest.raises(InvalidTransition):
            queue.report_statuses([StatusUpdate(b, QueueStatus.PROCESSING)])

        assert test_db.get_queue_entry(b).status == QueueStatus.CANCELLED
        assert test_db.get_campaign(campaign_id).status == CampaignStatus.SENT

    @pytest.mark.parametrize("status", [QueueStatus.QUEUED, QueueStatus.PROCESSING])
    def test_sent_entry_is_final(self, test_db, queue, campaign_id, status):
        [a] = queue.enqueue(campaign_id, ["a@example.com"])
        queue.report_statuses(attempt(a, QueueStatus.SENT))

        with pytest.raises(InvalidTransition):
            queue.report_statuses([StatusUpdate(a, status)])

        assert test_db.get_queue_entry(a).status == QueueStatus.SENT
        assert test_db.get_campaign(campaign_id).status == CampaignStatus.SENT

    def test_failed_entry_needs_retry(self, queue, campaign_id):
        [a] = queue.enqueue(campaign_id, ["a@example.com"])
        queue.report_statuses(attempt(a, QueueStatus.FAILED, "bounced"))

        with pytest.raises(InvalidTransition):
            queue.report_statuses([StatusUpdate(a, QueueStatus.PROCESSING)])

    def test_invalid_report_late_in_batch_writes_nothing(self, test_db, queue, campaign_id):
        a, b = queue.enqueue(campaign_id, ["a@example.com", "b@example.com"])

        with pytest.raises(InvalidTransition):
            queue.report_statuses(attempt(a, QueueStatus.SENT) + [StatusUpdate(b, QueueStatus.SENT)])

        assert test_db.get_queue_entry(a).status == QueueStatus.QUEUED
        assert test_db.get_queue_entry(a).attempt_count == 0

    def test_requeue_after_transient_failure(self, test_db, queue, campaign_id):
        [a] = queue.enqueue(campaign_id, ["a@example.com"])

        queue.report_statuses(attempt(a, QueueStatus.QUEUED, "421 try later"))

        entry = test_db.get_queue_entry(a)
        assert entry.status == QueueStatus.QUEUED
        assert entry.attempt_count == 1


class TestAttemptBudget:
    """Tests for max_attempts enforcement."""

    def test_requeue_past_budget_fails_entry(self, test_db, queue, campaign_id):
        [a] = queue.enqueue(campaign_id, ["a@example.com"], max_attempts=2)

        queue.report_statuses(attempt(a, QueueStatus.QUEUED, "421 try later"))
        assert test_db.get_queue_entry(a).status == QueueStatus.QUEUED

        queue.report_statuses(attempt(a, QueueStatus.QUEUED))

        entry = test_db.get_queue_entry(a)
        assert entry.status == QueueStatus.FAILED
        assert entry.attempt_count == 2
        assert entry.error_message == ATTEMPTS_EXHAUSTED
        assert test_db.get_campaign(campaign_id).status == CampaignStatus.SENT

    def test_worker_error_kept_when_budget_runs_out(self, test_db, queue, campaign_id):
        [a] = queue.enqueue(campaign_id, ["a@example.com"], max_attempts=1)

        queue.report_statuses(attempt(a, QueueStatus.QUEUED, "421 try later"))

        assert test_db.get_queue_entry(a).error_message == "421 try later"

    def test_processing_refused_without_attempts_left(self, test_db, queue, campaign_id):
        [a] = queue.enqueue(campaign_id, ["a@example.com"], max_attempts=1)
        # Written straight to the store: queued again with its one attempt spent
        test_db.update_queue_status(a, QueueStatus.PROCESSING)
        test_db.update_queue_status(a, QueueStatus.QUEUED)

        with pytest.raises(InvalidTransition, match="attempts"):
            queue.report_statuses([StatusUpdate(a, QueueStatus.PROCESSING)])

        entry = test_db.get_queue_entry(a)
        assert entry.status == QueueStatus.QUEUED
        assert entry.attempt_count == 1

    def test_repeat_pickups_in_one_batch_are_counted(self, test_db, queue, campaign_id):
        [a] = queue.enqueue(campaign_id, ["a@example.com"], max_attempts=1)

        # The requeue is coerced to failed, which cannot be picked up
        with pytest.raises(InvalidTransition):
            queue.report_statuses(
                attempt(a, QueueStatus.QUEUED) + [StatusUpdate(a, QueueStatus.PROCESSING)]
            )

        assert test_db.get_queue_entry(a).attempt_count == 0

    def test_retry_restores_budget(self, test_db, queue, campaign_id):
        [a] = queue.enqueue(campaign_id, ["a@example.com"], max_attempts=1)
        queue.report_statuses(attempt(a, QueueStatus.QUEUED))
        assert test_db.get_queue_entry(a).status == QueueStatus.FAILED

        queue.retry_failed(campaign_id)
        queue.report_statuses(attempt(a, QueueStatus.SENT))

        assert test_db.get_queue_entry(a).status == QueueStatus.SENT


class TestCancelAndRetry:
    """Tests for withdrawing and retrying emails."""

    def test_cancel_queued_entry(self, test_db, queue, campaign_id):
        a, b = queue.enqueue(campaign_id, ["a@example.com", "b@example.com"])
        queue.report_statuses(attempt(a, QueueStatus.SENT))

        queue.cancel_entry(b)

        assert test_db.get_queue_entry(b).status == QueueStatus.CANCELLED
        # Only the sent entry is left in play
        assert test_db.get_campaign(campaign_id).status == CampaignStatus.SENT

    def test_cannot_cancel_entry_in_flight(self, queue, campaign_id):
        [a] = queue.enqueue(campaign_id, ["a@example.com"])
        queue.report_statuses([StatusUpdate(a, QueueStatus.PROCESSING)])

        with pytest.raises(InvalidTransition, match="queued"):
            queue.cancel_entry(a)

    def test_cancel_unknown_entry(self, queue):
        with pytest.raises(NotFound):
            queue.cancel_entry(1234)

    def test_retry_failed_requeues_and_reopens_campaign(self, test_db, queue, campaign_id):
        a, b = queue.enqueue(campaign_id, ["a@example.com", "b@example.com"])
        queue.report_statuses(
            attempt(a, QueueStatus.FAILED, "timeout") + attempt(b, QueueStatus.SENT)
        )
        assert test_db.get_campaign(campaign_id).status == CampaignStatus.SENT

        assert queue.retry_failed(campaign_id) == 1

        entry = test_db.get_queue_entry(a)
        assert entry.status == QueueStatus.QUEUED
        assert entry.attempt_count == 0
        assert entry.error_message is None
        assert test_db.get_campaign(campaign_id).status == CampaignStatus.SENDING

    def test_retry_with_nothing_failed(self, queue, campaign_id):
        queue.enqueue(campaign_id, ["a@example.com"])
        assert queue.retry_failed(campaign_id) == 0

    def test_stats(self, queue, campaign_id):
        a, b, c = queue.enqueue(campaign_id, ["a@x.com", "b@x.com", "c@x.com"])
        queue.report_statuses(attempt(a, QueueStatus.SENT))
        queue.cancel_entry(c)

        stats = queue.stats(campaign_id)

        assert stats["total"] == 3
        assert stats["sent"] == 1
        assert stats["queued"] == 1
        assert stats["cancelled"] == 1
        assert stats["failed"] == 0

    def test_entries_carry_delivery_status(self, queue, campaign_id):
        a, b, c = queue.enqueue(campaign_id, ["a@x.com", "b@x.com", "c@x.com"])
        queue.report_statuses(attempt(a, QueueStatus.SENT) + attempt(b, QueueStatus.FAILED))
        queue.cancel_entry(c)

        entries = queue.entries(campaign_id)

        assert [e.delivery_status for e in entries] == [
            DeliveryStatus.SENT, DeliveryStatus.FAILED, None,
        ]


class TestCampaignStatusChanges:
    """Tests for user-requested campaign transitions."""

    def test_schedule_draft(self, campaigns, campaign_id):
        campaign = campaigns.change_status(campaign_id, CampaignStatus.SCHEDULED)
        assert campaign.status == CampaignStatus.SCHEDULED

    def test_same_status_is_a_no_op(self, campaigns, campaign_id):
        assert campaigns.change_status(campaign_id, CampaignStatus.DRAFT).status == CampaignStatus.DRAFT

    def test_sent_campaign_is_final(self, test_db, campaigns, campaign_id):
        test_db.set_campaign_status(campaign_id, CampaignStatus.SENT)
        with pytest.raises(InvalidTransition):
            campaigns.change_status(campaign_id, CampaignStatus.PAUSED)

    def test_draft_cannot_jump_to_sending(self, campaigns, campaign_id):
        with pytest.raises(InvalidTransition):
            campaigns.change_status(campaign_id, CampaignStatus.SENDING)

    def test_resume_reconciles_drained_campaign(self, test_db, queue, campaigns, campaign_id):
        [a] = queue.enqueue(campaign_id, ["a@example.com"])
        campaigns.change_status(campaign_id, CampaignStatus.PAUSED)
        queue.report_statuses(attempt(a, QueueStatus.SENT))
        assert test_db.get_campaign(campaign_id).status == CampaignStatus.PAUSED

        campaign = campaigns.change_status(campaign_id, CampaignStatus.SENDING)

        assert campaign.status == CampaignStatus.SENT

    def test_unknown_campaign(self, campaigns):
        with pytest.raises(NotFound):
            campaigns.change_status(77, CampaignStatus.PAUSED)
