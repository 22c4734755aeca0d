from typing import Optional

from fastapi import Header, HTTPException, Request, status

from ..core.errors import (
    AlertError,
    InvitationCodeConflict,
    InvitationExpiredOrUsed,
    InvitationNotFound,
    SelfLinkNotAllowed,
    Unauthenticated,
    UserNotFound,
)
from ..repositories import db_models
from ..repositories.repository import Repository
from ..services.contact_linker import ContactLinker
from ..services.triggers import TriggerBus

# Error kinds surfaced to callers as (HTTP status, callable status code).
CALLABLE_ERRORS = {
    Unauthenticated: (status.HTTP_401_UNAUTHORIZED, "unauthenticated"),
    InvitationNotFound: (status.HTTP_404_NOT_FOUND, "not-found"),
    UserNotFound: (status.HTTP_404_NOT_FOUND, "not-found"),
    InvitationExpiredOrUsed: (status.HTTP_400_BAD_REQUEST, "failed-precondition"),
    SelfLinkNotAllowed: (status.HTTP_400_BAD_REQUEST, "failed-precondition"),
    InvitationCodeConflict: (status.HTTP_409_CONFLICT, "already-exists"),
}


def callable_error(exc: AlertError) -> HTTPException:
    http_status, code = CALLABLE_ERRORS.get(type(exc), (status.HTTP_500_INTERNAL_SERVER_ERROR, "internal"))
    detail = {"status": code, "message": exc.message}
    if isinstance(exc, InvitationExpiredOrUsed):
        detail["reason"] = exc.reason
    headers = {"WWW-Authenticate": "Bearer"} if http_status == status.HTTP_401_UNAUTHORIZED else None
    return HTTPException(status_code=http_status, detail=detail, headers=headers)


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail=f"{name} not initialized")
    return value


def get_repository(request: Request) -> Repository:
    return _state(request, "repository")


def get_bus(request: Request) -> TriggerBus:
    return _state(request, "bus")


def get_linker(request: Request) -> ContactLinker:
    return _state(request, "linker")


def get_current_user(request: Request, authorization: Optional[str] = Header(default=None)) -> db_models.User:
    """Resolve the anonymous account from `Authorization: Bearer <token>`."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise callable_error(Unauthenticated())
    user = get_repository(request).get_user_by_token(token.strip())
    if user is None:
        raise callable_error(Unauthenticated("Invalid or expired credentials"))
    return user
