"""
Helpdesk router module for /users
"""

import logging
from typing import Optional

import pydantic
from fastapi import APIRouter, Depends

from ..dependency import LocalRequestData
from ..dispatcher import UserDispatcher
from ... import schemas


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.get(
    "",
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 422)}
)
async def list_users(
        page: pydantic.PositiveInt = 1,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Return one page of users, optionally filtered and sorted
    """

    return UserDispatcher(local).index(page)


@router.post(
    "",
    status_code=201,
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 403, 409, 422)}
)
async def create_user(body: schemas.UserCreation, local: LocalRequestData = Depends(LocalRequestData)):
    """
    Create a new user account

    * `403`: if the principal may not manage users
    * `409`: if the email address is already taken
    """

    return UserDispatcher(local).store(body)


@router.get(
    "/{user_id}",
    name="show_user",
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 404)}
)
async def show_user(
        user_id: pydantic.PositiveInt,
        include: Optional[str] = None,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Return details about a specific user identified by its `user_id`

    Use `include=tickets` to embed the user's tickets in the response.
    """

    return UserDispatcher(local).show(user_id, include)


@router.put(
    "/{user_id}",
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 403, 404, 409, 422)}
)
async def replace_user(
        user_id: pydantic.PositiveInt,
        body: schemas.UserUpdate,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Replace all mutable fields of the user identified by its `user_id`
    """

    return UserDispatcher(local).replace(user_id, body)


@router.patch(
    "/{user_id}",
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 403, 404, 409, 422)}
)
async def update_user(
        user_id: pydantic.PositiveInt,
        body: schemas.UserPatch,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Update the given fields of the user identified by its `user_id`, keeping all others
    """

    return UserDispatcher(local).update(user_id, body)


@router.delete(
    "/{user_id}",
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 403, 404, 409)}
)
async def delete_user(user_id: pydantic.PositiveInt, local: LocalRequestData = Depends(LocalRequestData)):
    """
    Delete the user identified by its `user_id`

    * `409`: if the user still authors any tickets
    """

    return UserDispatcher(local).delete(user_id)
