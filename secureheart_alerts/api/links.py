import logging
import time

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from ..core.errors import AlertError
from ..repositories import db_models
from ..repositories.repository import Repository
from ..schemas import (
    LinkContactsRequest,
    LinkContactsResponse,
    LinkRequestCreate,
    LinkRequestCreated,
    LinkRequestStatus,
)
from ..services.contact_linker import ContactLinker
from ..services.link_invitations import generate_invitation_code
from ..services.triggers import TriggerBus
from .deps import callable_error, get_bus, get_current_user, get_linker, get_repository

router = APIRouter()
log = logging.getLogger(__name__)


@router.post("/link-requests", response_model=LinkRequestCreated, status_code=status.HTTP_201_CREATED)
def create_link_request(
    payload: LinkRequestCreate,
    background_tasks: BackgroundTasks,
    user: db_models.User = Depends(get_current_user),
    repository: Repository = Depends(get_repository),
    bus: TriggerBus = Depends(get_bus),
):
    """
    Starts the linking flow for the caller (the inviter).

    The invitation becomes usable once the request is processed; its code is
    shared out of band with the person being invited.
    """
    code = payload.invitation_code or generate_invitation_code()
    try:
        request_id = repository.create_link_request(
            inviter_user_id=user.id,
            inviter_first_name=payload.inviter_first_name,
            invitation_code=code,
            timestamp=payload.timestamp if payload.timestamp is not None else time.time(),
        )
    except AlertError as exc:
        log.exception("Error recording link request")
        raise HTTPException(status_code=500, detail=str(exc))
    background_tasks.add_task(bus.emit_link_request_created, request_id)
    return LinkRequestCreated(id=request_id, invitation_code=code)


@router.get("/link-requests/{request_id}", response_model=LinkRequestStatus)
def get_link_request(
    request_id: str,
    user: db_models.User = Depends(get_current_user),
    repository: Repository = Depends(get_repository),
):
    item = repository.get_link_request(request_id)
    if not item or item.inviter_user_id != user.id:
        raise HTTPException(status_code=404, detail="Link request not found")
    return item


@router.post("/link-contacts", response_model=LinkContactsResponse)
def link_contacts(
    payload: LinkContactsRequest,
    user: db_models.User = Depends(get_current_user),
    linker: ContactLinker = Depends(get_linker),
):
    """Redeems an invitation code for the caller; both users end up linked to each other."""
    try:
        result = linker.link(
            payload.invitation_code,
            requester_user_id=user.id,
            requester_first_name=payload.contact_first_name,
            requester_push_token=payload.contact_push_token,
        )
    except AlertError as exc:
        log.warning("Linking failed for %s: %s", user.id, exc.kind)
        raise callable_error(exc)
    return LinkContactsResponse(success=True, linked_with=result.inviter_first_name, message=result.message)
