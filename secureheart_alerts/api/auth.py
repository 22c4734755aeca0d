import logging

from fastapi import APIRouter, Depends, status

from ..repositories.repository import Repository
from ..schemas import AnonymousSignInResponse
from .deps import get_repository

router = APIRouter()
log = logging.getLogger(__name__)


@router.post("/auth/anonymous", response_model=AnonymousSignInResponse, status_code=status.HTTP_201_CREATED)
def sign_in_anonymously(repository: Repository = Depends(get_repository)):
    """
    Creates an anonymous account for this device.

    The returned token is the only credential; clients keep it in the keychain
    and send it as `Authorization: Bearer <auth_token>`.
    """
    user = repository.create_user()
    log.info("Anonymous account created: %s", user.id)
    return AnonymousSignInResponse(user_id=user.id, auth_token=user.auth_token)
