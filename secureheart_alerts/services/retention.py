"""
Scheduled cleanup of expired invitations and old processed emergency requests.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable

from ..repositories.repository import Repository

logger = logging.getLogger(__name__)


class RetentionSweeper:
    def __init__(
        self,
        repository: Repository,
        notification_retention: timedelta = timedelta(days=7),
        batch_size: int = 500,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.repository = repository
        self.notification_retention = notification_retention
        self.batch_size = batch_size
        self.clock = clock

    def sweep_expired_invitations(self) -> int:
        """Delete every invitation past its expiry, used or not."""
        logger.info("Starting cleanup of expired invitation links")
        deleted = self.repository.delete_expired_invitations(self.clock(), batch_size=self.batch_size)
        logger.info("Cleaned up %s expired invitation links", deleted)
        return deleted

    def sweep_processed_notifications(self) -> int:
        """Delete processed requests older than the retention window.

        Requests that failed or never got marked are kept for diagnosis.
        """
        cutoff = self.clock() - self.notification_retention
        logger.info("Starting cleanup of notifications processed before %s", cutoff)
        deleted = self.repository.delete_processed_requests(cutoff, batch_size=self.batch_size)
        logger.info("Cleaned up %s old notifications", deleted)
        return deleted
