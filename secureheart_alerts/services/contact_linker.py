"""
Consumes an invitation code and links the two users in both directions.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from ..core.errors import InvitationExpiredOrUsed, InvitationNotFound, SelfLinkNotAllowed
from ..repositories.repository import Repository

logger = logging.getLogger(__name__)


@dataclass
class LinkResult:
    inviter_user_id: str
    inviter_first_name: str

    @property
    def message(self) -> str:
        return f"You're now linked with {self.inviter_first_name} for emergency alerts"


class ContactLinker:
    def __init__(self, repository: Repository, clock: Callable[[], datetime] = datetime.utcnow):
        self.repository = repository
        self.clock = clock

    def link(
        self,
        invitation_code: str,
        requester_user_id: str,
        requester_first_name: str,
        requester_push_token: str = "",
    ) -> LinkResult:
        now = self.clock()
        invitation = self.repository.get_invitation(invitation_code)
        if invitation is None:
            raise InvitationNotFound()
        if invitation.used:
            raise InvitationExpiredOrUsed(reason="used")
        if invitation.expires_at <= now:
            raise InvitationExpiredOrUsed(reason="expired")
        if invitation.inviter_user_id == requester_user_id:
            raise SelfLinkNotAllowed()

        # Re-checked inside the transaction; a concurrent caller may have won.
        invitation = self.repository.link_contacts(
            invitation_code=invitation_code,
            requester_user_id=requester_user_id,
            requester_first_name=requester_first_name,
            requester_push_token=requester_push_token,
            now=now,
        )
        logger.info(
            "Linked %s with %s via invitation", requester_user_id, invitation.inviter_user_id,
        )
        return LinkResult(
            inviter_user_id=invitation.inviter_user_id,
            inviter_first_name=invitation.inviter_first_name,
        )
