"""
Time-limited invitation codes for linking an emergency contact.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..repositories import db_models
from ..repositories.repository import Repository

logger = logging.getLogger(__name__)

# No 0/O or 1/I, codes are read aloud and typed by hand.
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 8


def generate_invitation_code(length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


class LinkInvitationStore:
    def __init__(
        self,
        repository: Repository,
        ttl: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.repository = repository
        self.ttl = ttl
        self.clock = clock

    def issue(self, inviter_user_id: str, inviter_first_name: str, invitation_code: str) -> db_models.LinkInvitation:
        now = self.clock()
        return self.repository.create_invitation(
            code=invitation_code,
            inviter_user_id=inviter_user_id,
            inviter_first_name=inviter_first_name,
            created_at=now,
            expires_at=now + self.ttl,
        )

    def process(self, link_request_id: str) -> Optional[db_models.LinkInvitation]:
        """Turn a link request into an invitation and mark the request either way."""
        link_request = self.repository.get_link_request(link_request_id)
        if link_request is None:
            logger.error("Link request %s does not exist", link_request_id)
            return None
        if link_request.processed is not None:
            logger.info("Link request %s already processed, skipping", link_request_id)
            return None

        logger.info("Processing contact link request %s", link_request_id)
        try:
            invitation = self.issue(
                link_request.inviter_user_id,
                link_request.inviter_first_name,
                link_request.invitation_code,
            )
        except Exception as exc:
            logger.exception("Error processing contact link request %s", link_request_id)
            self.repository.mark_link_request(link_request_id, processed=False, error=str(exc) or type(exc).__name__)
            return None

        self.repository.mark_link_request(link_request_id, processed=True)
        logger.info("Contact link request %s processed, invitation expires at %s", link_request_id, invitation.expires_at)
        return invitation
