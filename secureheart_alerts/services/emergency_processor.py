"""
Handles a newly written emergency request: fan out to the reporter's linked
contacts, persist the emergency event and mark the request.
"""

import logging
from typing import Dict, Optional, Tuple

from ..core.errors import StoreWriteFailed, UserNotFound
from ..repositories import db_models
from ..repositories.repository import Repository
from .notification_dispatcher import NotificationDispatcher, failure_kinds, summarize, sent_contacts

logger = logging.getLogger(__name__)


class EmergencyEventProcessor:
    def __init__(self, repository: Repository, dispatcher: NotificationDispatcher):
        self.repository = repository
        self.dispatcher = dispatcher

    def process(self, notification_id: str) -> Optional[Dict[str, str]]:
        """Process one request and always leave it marked processed true or false.

        Returns the per-contact status map on success, None on failure or when
        the request was already handled.
        """
        request = self.repository.get_emergency_request(notification_id)
        if request is None:
            logger.error("Emergency request %s does not exist", notification_id)
            return None
        if request.processed is not None:
            logger.info("Emergency request %s already processed, skipping", notification_id)
            return None

        logger.info(
            "Processing emergency request %s: user=%s heart_rate=%s severity=%s",
            notification_id, request.user_id, request.heart_rate, request.severity,
        )

        results: Optional[Dict[str, str]] = None
        errors: Optional[Dict[str, str]] = None
        error: Optional[str] = None
        try:
            results, errors = self._handle(notification_id, request)
        except Exception as exc:
            logger.exception("Error processing emergency request %s", notification_id)
            error = str(exc) or type(exc).__name__
        finally:
            self._mark(notification_id, results, errors, error)
        return results

    def _handle(
        self, notification_id: str, request: db_models.EmergencyRequest
    ) -> Tuple[Dict[str, str], Dict[str, str]]:
        if self.repository.get_user(request.user_id) is None:
            raise UserNotFound(request.user_id)

        contacts = self.repository.list_linked_contacts(request.user_id)
        logger.info("Found %s linked contacts to notify for %s", len(contacts), notification_id)

        outcomes = self.dispatcher.dispatch_all(contacts, request, notification_id)
        status = summarize(outcomes)

        location = None
        if request.share_location and request.latitude is not None and request.longitude is not None:
            location = {"latitude": request.latitude, "longitude": request.longitude}

        self.repository.save_emergency_event(
            event_id=request.emergency_event_id,
            user_id=request.user_id,
            user_first_name=request.user_first_name,
            heart_rate=request.heart_rate,
            severity=request.severity,
            timestamp=request.timestamp,
            location=location,
            contacts_notified=[c.contact_user_id for c in contacts],
            notification_status=status,
        )
        logger.info(
            "Emergency event %s recorded: %s/%s contacts notified",
            request.emergency_event_id, len(sent_contacts(outcomes)), len(contacts),
        )
        return status, failure_kinds(outcomes)

    def _mark(
        self,
        notification_id: str,
        results: Optional[Dict[str, str]],
        errors: Optional[Dict[str, str]],
        error: Optional[str],
    ) -> None:
        if error is None:
            try:
                self.repository.mark_emergency_request(
                    notification_id, processed=True, results=results or {}, errors=errors or {}
                )
                logger.info("Emergency request %s processed successfully", notification_id)
                return
            except StoreWriteFailed as exc:
                logger.exception("Could not mark emergency request %s as processed", notification_id)
                error = str(exc)
        self.repository.mark_emergency_request(notification_id, processed=False, error=error)
