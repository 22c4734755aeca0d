import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from ..core.errors import AlertError, EmergencyEventExists
from ..repositories import db_models
from ..repositories.repository import Repository
from ..schemas import EmergencyRequestCreate, EmergencyRequestCreated, EmergencyRequestStatus
from ..services.triggers import TriggerBus
from .deps import get_bus, get_current_user, get_repository

router = APIRouter()
log = logging.getLogger(__name__)


@router.post("/notifications", response_model=EmergencyRequestCreated, status_code=status.HTTP_201_CREATED)
def report_emergency(
    payload: EmergencyRequestCreate,
    background_tasks: BackgroundTasks,
    user: db_models.User = Depends(get_current_user),
    repository: Repository = Depends(get_repository),
    bus: TriggerBus = Depends(get_bus),
):
    """
    Records an emergency detected on the watch and queues the fan-out.

    The response only confirms the write; poll GET /notifications/{id} for the
    per-contact results.
    """
    try:
        request_id = repository.create_emergency_request(
            emergency_event_id=payload.emergency_event_id,
            user_id=user.id,
            user_first_name=payload.user_first_name,
            heart_rate=payload.heart_rate,
            severity=payload.severity.value,
            timestamp=payload.timestamp,
            share_location=payload.share_location,
            latitude=payload.location.latitude if payload.location else None,
            longitude=payload.location.longitude if payload.location else None,
        )
    except EmergencyEventExists as exc:
        log.warning("Rejected emergency request from %s: %s", user.id, exc)
        raise HTTPException(status_code=409, detail=str(exc))
    except AlertError as exc:
        log.exception("Error recording emergency request")
        raise HTTPException(status_code=500, detail=str(exc))
    background_tasks.add_task(bus.emit_emergency_request_created, request_id)
    log.info("Emergency request %s recorded for %s", request_id, user.id)
    return EmergencyRequestCreated(id=request_id, emergency_event_id=payload.emergency_event_id)


@router.get("/notifications/{request_id}", response_model=EmergencyRequestStatus)
def get_emergency_request(
    request_id: str,
    user: db_models.User = Depends(get_current_user),
    repository: Repository = Depends(get_repository),
):
    item = repository.get_emergency_request(request_id)
    if not item or item.user_id != user.id:
        raise HTTPException(status_code=404, detail="Emergency request not found")
    return item
