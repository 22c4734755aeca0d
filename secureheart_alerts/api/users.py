import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from ..core.errors import AlertError
from ..repositories import db_models
from ..repositories.repository import Repository
from ..schemas import ContactSharingUpdate, LinkedContactView, PushTokenUpdate, PushTokenUpdateResponse, UserProfile
from .deps import callable_error, get_current_user, get_repository

router = APIRouter()
log = logging.getLogger(__name__)


def _contact_view(contact: db_models.LinkedContact) -> LinkedContactView:
    return LinkedContactView(
        contact_user_id=contact.contact_user_id,
        contact_first_name=contact.contact_first_name,
        linked_at=contact.linked_at,
        share_location_with_me=contact.share_location_with_me,
        share_my_location_with_them=contact.share_my_location_with_them,
        has_push_token=bool(contact.push_token),
    )


@router.get("/users/me", response_model=UserProfile)
def get_me(user: db_models.User = Depends(get_current_user)):
    return UserProfile(id=user.id, has_push_token=bool(user.push_token), created_at=user.created_at)


@router.put("/users/me/push-token", response_model=PushTokenUpdateResponse)
def update_push_token(
    payload: PushTokenUpdate,
    user: db_models.User = Depends(get_current_user),
    repository: Repository = Depends(get_repository),
):
    """Registers the caller's push token and refreshes it in every contact entry pointing at them."""
    try:
        refreshed = repository.update_push_token(user.id, payload.push_token)
    except AlertError as exc:
        log.exception("Error updating push token for %s", user.id)
        raise callable_error(exc)
    log.info("Push token updated for %s (%s contact entries refreshed)", user.id, refreshed)
    return PushTokenUpdateResponse(contacts_refreshed=refreshed)


@router.get("/users/me/contacts", response_model=List[LinkedContactView])
def list_contacts(
    user: db_models.User = Depends(get_current_user),
    repository: Repository = Depends(get_repository),
):
    return [_contact_view(c) for c in repository.list_linked_contacts(user.id)]


@router.patch("/users/me/contacts/{contact_user_id}", response_model=LinkedContactView)
def update_contact_sharing(
    contact_user_id: str,
    payload: ContactSharingUpdate,
    user: db_models.User = Depends(get_current_user),
    repository: Repository = Depends(get_repository),
):
    contact = repository.update_contact_sharing(
        user.id,
        contact_user_id,
        share_location_with_me=payload.share_location_with_me,
        share_my_location_with_them=payload.share_my_location_with_them,
    )
    if not contact:
        raise HTTPException(status_code=404, detail="Linked contact not found")
    return _contact_view(contact)
