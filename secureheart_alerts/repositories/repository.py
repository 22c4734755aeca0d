"""
Repository over the document-style records shared by the alerting components.

Components receive a Repository instance instead of reaching for a global
engine, so tests can hand them one bound to an in-memory database.
"""

import logging
import secrets
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List, Optional
from uuid import uuid4

from sqlalchemy import delete, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from ..core.errors import (
    AlertError,
    EmergencyEventExists,
    InvitationCodeConflict,
    InvitationExpiredOrUsed,
    StoreWriteFailed,
    UserNotFound,
)
from . import db, db_models

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.utcnow()


class Repository:
    def __init__(self, engine: Engine):
        self.engine = engine

    def init_db(self) -> None:
        db.init_db(self.engine)

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    @contextmanager
    def _write(self) -> Iterator[Session]:
        """Single unit of work: commits on success, rolls back on any error."""
        session = self._session()
        try:
            yield session
            session.commit()
        except AlertError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreWriteFailed(str(exc)) from exc
        finally:
            session.close()

    # Users --------------------------------------------------------------------
    def create_user(self) -> db_models.User:
        user = db_models.User(
            id=str(uuid4()),
            auth_token=secrets.token_urlsafe(32),
            created_at=_now(),
            updated_at=_now(),
        )
        with self._write() as session:
            session.add(user)
        return user

    def get_user(self, user_id: str) -> Optional[db_models.User]:
        with self._session() as session:
            return session.get(db_models.User, user_id)

    def get_user_by_token(self, auth_token: str) -> Optional[db_models.User]:
        with self._session() as session:
            stmt = select(db_models.User).where(db_models.User.auth_token == auth_token)
            return session.exec(stmt).first()

    def update_push_token(self, user_id: str, push_token: str) -> int:
        """Store the user's token and copy it into every entry that points at them.

        Returns the number of contact entries refreshed.
        """
        with self._write() as session:
            user = session.get(db_models.User, user_id)
            if not user:
                raise UserNotFound(user_id)
            user.push_token = push_token
            user.updated_at = _now()
            session.add(user)
            stmt = (
                update(db_models.LinkedContact)
                .where(db_models.LinkedContact.contact_user_id == user_id)
                .values(push_token=push_token)
            )
            refreshed = session.exec(stmt).rowcount
        return refreshed

    # Linked contacts ----------------------------------------------------------
    def list_linked_contacts(self, owner_user_id: str) -> List[db_models.LinkedContact]:
        with self._session() as session:
            stmt = select(db_models.LinkedContact).where(db_models.LinkedContact.owner_user_id == owner_user_id)
            stmt = stmt.order_by(db_models.LinkedContact.linked_at)
            return list(session.exec(stmt))

    def get_linked_contact(self, owner_user_id: str, contact_user_id: str) -> Optional[db_models.LinkedContact]:
        with self._session() as session:
            return session.get(db_models.LinkedContact, (owner_user_id, contact_user_id))

    def update_contact_sharing(
        self,
        owner_user_id: str,
        contact_user_id: str,
        share_location_with_me: Optional[bool] = None,
        share_my_location_with_them: Optional[bool] = None,
    ) -> Optional[db_models.LinkedContact]:
        with self._write() as session:
            contact = session.get(db_models.LinkedContact, (owner_user_id, contact_user_id))
            if not contact:
                return None
            if share_location_with_me is not None:
                contact.share_location_with_me = share_location_with_me
            if share_my_location_with_them is not None:
                contact.share_my_location_with_them = share_my_location_with_them
            session.add(contact)
        return contact

    def link_contacts(
        self,
        *,
        invitation_code: str,
        requester_user_id: str,
        requester_first_name: str,
        requester_push_token: str,
        now: datetime,
    ) -> db_models.LinkInvitation:
        """Claim the invitation and write both sides of the link in one transaction.

        The claim is a conditional update, so of two concurrent callers only one
        sees a row change; the other gets InvitationExpiredOrUsed.
        """
        with self._write() as session:
            claim = (
                update(db_models.LinkInvitation)
                .where(db_models.LinkInvitation.code == invitation_code)
                .where(db_models.LinkInvitation.used == False)  # noqa: E712
                .where(db_models.LinkInvitation.expires_at > now)
                .values(used=True)
            )
            if session.exec(claim).rowcount != 1:
                raise InvitationExpiredOrUsed(reason="used")
            invitation = session.get(db_models.LinkInvitation, invitation_code)
            inviter_id = invitation.inviter_user_id

            for user_id in (inviter_id, requester_user_id):
                if session.get(db_models.User, user_id) is None:
                    raise UserNotFound(user_id)

            self._upsert_contact(
                session, inviter_id, requester_user_id, requester_first_name, requester_push_token or "", now
            )
            # The inviter's token is filled in when their client next registers one.
            self._upsert_contact(session, requester_user_id, inviter_id, invitation.inviter_first_name, "", now)
        return invitation

    @staticmethod
    def _upsert_contact(
        session: Session,
        owner_user_id: str,
        contact_user_id: str,
        first_name: str,
        push_token: str,
        now: datetime,
    ) -> None:
        """Re-linking an existing pair keeps its consent flags and any token already known."""
        contact = session.get(db_models.LinkedContact, (owner_user_id, contact_user_id))
        if contact is None:
            contact = db_models.LinkedContact(
                owner_user_id=owner_user_id,
                contact_user_id=contact_user_id,
                contact_first_name=first_name,
                push_token=push_token,
                linked_at=now,
                share_location_with_me=False,
                share_my_location_with_them=False,
            )
        else:
            contact.contact_first_name = first_name
            contact.linked_at = now
            if push_token:
                contact.push_token = push_token
        session.add(contact)

    # Emergency requests -------------------------------------------------------
    def create_emergency_request(
        self,
        *,
        emergency_event_id: str,
        user_id: str,
        user_first_name: str,
        heart_rate: int,
        severity: str,
        timestamp: float,
        share_location: bool,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        request_id: Optional[str] = None,
    ) -> str:
        request = db_models.EmergencyRequest(
            id=request_id or str(uuid4()),
            emergency_event_id=emergency_event_id,
            user_id=user_id,
            user_first_name=user_first_name,
            heart_rate=heart_rate,
            severity=severity,
            timestamp=timestamp,
            latitude=latitude,
            longitude=longitude,
            share_location=share_location,
            created_at=_now(),
        )
        with self._write() as session:
            if self._emergency_event_taken(session, emergency_event_id):
                raise EmergencyEventExists(emergency_event_id)
            session.add(request)
            try:
                session.flush()
            except IntegrityError as exc:
                raise EmergencyEventExists(emergency_event_id) from exc
        return request.id

    @staticmethod
    def _emergency_event_taken(session: Session, emergency_event_id: str) -> bool:
        if session.get(db_models.EmergencyEvent, emergency_event_id) is not None:
            return True
        stmt = select(db_models.EmergencyRequest.id).where(
            db_models.EmergencyRequest.emergency_event_id == emergency_event_id
        )
        return session.exec(stmt).first() is not None

    def get_emergency_request(self, request_id: str) -> Optional[db_models.EmergencyRequest]:
        with self._session() as session:
            return session.get(db_models.EmergencyRequest, request_id)

    def mark_emergency_request(
        self,
        request_id: str,
        *,
        processed: bool,
        results: Optional[Dict[str, str]] = None,
        error: Optional[str] = None,
        errors: Optional[Dict[str, str]] = None,
    ) -> bool:
        with self._write() as session:
            request = session.get(db_models.EmergencyRequest, request_id)
            if not request:
                return False
            request.processed = processed
            request.processed_at = _now()
            if results is not None:
                request.results = dict(results)
            if error is not None:
                request.error = error
            if errors is not None:
                request.errors = dict(errors)
            session.add(request)
            return True

    # Emergency events ---------------------------------------------------------
    def save_emergency_event(
        self,
        *,
        event_id: str,
        user_id: str,
        user_first_name: str,
        heart_rate: int,
        severity: str,
        timestamp: float,
        location: Optional[Dict[str, float]],
        contacts_notified: List[str],
        notification_status: Dict[str, str],
    ) -> db_models.EmergencyEvent:
        event = db_models.EmergencyEvent(
            id=event_id,
            user_id=user_id,
            user_first_name=user_first_name,
            heart_rate=heart_rate,
            severity=severity,
            timestamp=timestamp,
            created_at=_now(),
            location=location,
            contacts_notified=list(contacts_notified),
            notification_status=dict(notification_status),
            resolved=False,
            resolved_at=None,
        )
        # Insert only: an existing event with this id makes the write fail.
        with self._write() as session:
            session.add(event)
        return event

    def get_emergency_event(self, event_id: str) -> Optional[db_models.EmergencyEvent]:
        with self._session() as session:
            return session.get(db_models.EmergencyEvent, event_id)

    def list_emergency_events(
        self, user_id: str, resolved: Optional[bool] = None, limit: int = 50
    ) -> List[db_models.EmergencyEvent]:
        with self._session() as session:
            stmt = select(db_models.EmergencyEvent).where(db_models.EmergencyEvent.user_id == user_id)
            if resolved is not None:
                stmt = stmt.where(db_models.EmergencyEvent.resolved == resolved)
            stmt = stmt.order_by(db_models.EmergencyEvent.created_at.desc()).limit(limit)
            return list(session.exec(stmt))

    def resolve_emergency_event(self, event_id: str) -> Optional[db_models.EmergencyEvent]:
        with self._write() as session:
            event = session.get(db_models.EmergencyEvent, event_id)
            if not event:
                return None
            if not event.resolved:
                event.resolved = True
                event.resolved_at = _now()
                session.add(event)
        return event

    # Link requests and invitations --------------------------------------------
    def create_link_request(
        self,
        *,
        inviter_user_id: str,
        inviter_first_name: str,
        invitation_code: str,
        timestamp: float,
    ) -> str:
        link_request = db_models.LinkRequest(
            id=str(uuid4()),
            inviter_user_id=inviter_user_id,
            inviter_first_name=inviter_first_name,
            invitation_code=invitation_code,
            timestamp=timestamp,
            created_at=_now(),
        )
        with self._write() as session:
            session.add(link_request)
        return link_request.id

    def get_link_request(self, request_id: str) -> Optional[db_models.LinkRequest]:
        with self._session() as session:
            return session.get(db_models.LinkRequest, request_id)

    def mark_link_request(self, request_id: str, *, processed: bool, error: Optional[str] = None) -> bool:
        with self._write() as session:
            link_request = session.get(db_models.LinkRequest, request_id)
            if not link_request:
                return False
            link_request.processed = processed
            link_request.processed_at = _now()
            if error is not None:
                link_request.error = error
            session.add(link_request)
            return True

    def create_invitation(
        self,
        *,
        code: str,
        inviter_user_id: str,
        inviter_first_name: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> db_models.LinkInvitation:
        """Write an invitation, replacing a previous one only if it is spent or expired."""
        invitation = db_models.LinkInvitation(
            code=code,
            inviter_user_id=inviter_user_id,
            inviter_first_name=inviter_first_name,
            created_at=created_at,
            expires_at=expires_at,
            used=False,
        )
        with self._write() as session:
            existing = session.get(db_models.LinkInvitation, code)
            if existing and not existing.used and existing.expires_at > created_at:
                raise InvitationCodeConflict(f"Invitation code {code} is already in use")
            if existing:
                logger.info("Replacing spent or expired invitation from %s", existing.inviter_user_id)
            session.merge(invitation)
        return invitation

    def get_invitation(self, code: str) -> Optional[db_models.LinkInvitation]:
        with self._session() as session:
            return session.get(db_models.LinkInvitation, code)

    # Retention ----------------------------------------------------------------
    def delete_expired_invitations(self, now: datetime, batch_size: int = 500) -> int:
        table = db_models.LinkInvitation
        deleted = 0
        while True:
            with self._write() as session:
                stmt = select(table.code).where(table.expires_at < now).limit(batch_size)
                codes = list(session.exec(stmt))
                if codes:
                    session.exec(delete(table).where(table.code.in_(codes)))
            deleted += len(codes)
            if len(codes) < batch_size:
                return deleted

    def delete_processed_requests(self, before: datetime, batch_size: int = 500) -> int:
        table = db_models.EmergencyRequest
        deleted = 0
        while True:
            with self._write() as session:
                stmt = (
                    select(table.id)
                    .where(table.processed == True)  # noqa: E712
                    .where(table.processed_at < before)
                    .limit(batch_size)
                )
                ids = list(session.exec(stmt))
                if ids:
                    session.exec(delete(table).where(table.id.in_(ids)))
            deleted += len(ids)
            if len(ids) < batch_size:
                return deleted

