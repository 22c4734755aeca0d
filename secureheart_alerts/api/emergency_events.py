import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..repositories import db_models
from ..repositories.repository import Repository
from ..schemas import EmergencyEventRecord
from .deps import get_current_user, get_repository

router = APIRouter()
log = logging.getLogger(__name__)


def _owned_event(event_id: str, user: db_models.User, repository: Repository) -> db_models.EmergencyEvent:
    event = repository.get_emergency_event(event_id)
    if not event or event.user_id != user.id:
        raise HTTPException(status_code=404, detail="Emergency event not found")
    return event


@router.get("/emergency-events", response_model=List[EmergencyEventRecord])
def list_emergency_events(
    resolved: Optional[bool] = None,
    limit: int = Query(default=50, ge=1, le=200),
    user: db_models.User = Depends(get_current_user),
    repository: Repository = Depends(get_repository),
):
    return repository.list_emergency_events(user.id, resolved=resolved, limit=limit)


@router.get("/emergency-events/{event_id}", response_model=EmergencyEventRecord)
def get_emergency_event(
    event_id: str,
    user: db_models.User = Depends(get_current_user),
    repository: Repository = Depends(get_repository),
):
    return _owned_event(event_id, user, repository)


@router.post("/emergency-events/{event_id}/resolve", response_model=EmergencyEventRecord)
def resolve_emergency_event(
    event_id: str,
    user: db_models.User = Depends(get_current_user),
    repository: Repository = Depends(get_repository),
):
    _owned_event(event_id, user, repository)
    event = repository.resolve_emergency_event(event_id)
    log.info("Emergency event %s resolved by %s", event_id, user.id)
    return event
