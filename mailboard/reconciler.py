"""
Campaign status reconciliation.

A campaign's status is derived from the statuses of its email queue
entries. The mailer worker reports queue changes in batches and calls
update_campaign_status() for each affected campaign afterwards.

Paused and cancelled campaigns are frozen: reconciliation never
changes them, whatever the queue holds.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Iterable

from .database import Database
from .database.models import CampaignStatus, FROZEN_STATUSES, QueueStatus
from .exceptions import NotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueCounts:
    """Entry counts for the four buckets the reconciler looks at."""
    sent: int = 0
    failed: int = 0
    queued: int = 0
    processing: int = 0

    @property
    def pending(self) -> int:
        return self.queued + self.processing

    @property
    def progressed(self) -> int:
        """Entries that reached a final outcome."""
        return self.sent + self.failed

    @property
    def total(self) -> int:
        return self.pending + self.progressed

    @classmethod
    def from_statuses(cls, statuses: Iterable[QueueStatus | str]) -> "QueueCounts":
        """Bucket entry statuses. Cancelled entries are not counted."""
        counter = Counter(QueueStatus(s) for s in statuses)
        return cls(
            sent=counter[QueueStatus.SENT],
            failed=counter[QueueStatus.FAILED],
            queued=counter[QueueStatus.QUEUED],
            processing=counter[QueueStatus.PROCESSING],
        )


def derive_campaign_status(current: CampaignStatus, counts: QueueCounts) -> CampaignStatus:
    """
    Compute the status a campaign should have given its queue counts.

    First match wins:
      1. frozen (paused/cancelled)           -> current
      2. nothing pending, something finished -> sent
      3. something finished                  -> sending
      4. something queued or processing      -> sending
      5. otherwise                           -> current

    Rule 4 means a campaign whose entries are all still queued reads as
    "sending": dispatch has begun even though nothing was attempted yet.
    The dashboard relies on this to tell "Sending" from "Scheduled".
    """
    current = CampaignStatus(current)
    if current in FROZEN_STATUSES:
        return current

    if counts.pending == 0 and counts.progressed > 0:
        return CampaignStatus.SENT
    if counts.progressed > 0:
        return CampaignStatus.SENDING
    if counts.pending > 0:
        return CampaignStatus.SENDING
    return current


def update_campaign_status(db: Database, campaign_id: int) -> CampaignStatus | None:
    """
    Re-derive and persist a campaign's status from its queue.

    Returns the newly written status, or None when nothing was written
    (frozen campaign, empty queue, or status already correct). Calling
    it again without queue changes in between is a no-op.

    The write does not check what it overwrites; concurrent calls for
    one campaign settle on whichever lands last, and the next call
    corrects any stale result.

    Raises:
        NotFound: if the campaign does not exist
    """
    campaign = db.get_campaign(campaign_id)
    if campaign is None:
        raise NotFound(f"Campaign {campaign_id} not found")

    if campaign.status in FROZEN_STATUSES:
        logger.debug(f"Campaign {campaign_id} is {campaign.status.value}; not reconciling")
        return None

    statuses = db.get_queue_statuses(campaign_id)
    if not statuses:
        return None

    counts = QueueCounts.from_statuses(statuses)
    new_status = derive_campaign_status(campaign.status, counts)

    logger.debug(
        f"Campaign {campaign_id} status check: current={campaign.status.value} "
        f"sent={counts.sent} failed={counts.failed} queued={counts.queued} "
        f"processing={counts.processing} -> {new_status.value}"
    )

    if new_status == campaign.status:
        return None

    db.set_campaign_status(campaign_id, new_status)
    logger.info(
        f"Campaign {campaign_id} status {campaign.status.value} -> {new_status.value}"
    )
    return new_status
