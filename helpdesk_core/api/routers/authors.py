"""
Helpdesk router module for /authors and the tickets of a single author

Every route below an author only sees the tickets of that author. Tickets
of other authors are reported as not found, just like missing tickets.
"""

import logging
from typing import Optional

import pydantic
from fastapi import APIRouter, Depends

from ..dependency import LocalRequestData
from ..dispatcher import AuthorDispatcher, TicketDispatcher
from ..scopes import AuthorScope, OwnerScope
from ... import schemas


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/authors", tags=["Authors"])


@router.get(
    "",
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 422)}
)
async def list_authors(
        page: pydantic.PositiveInt = 1,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Return one page of users who authored at least one ticket
    """

    return AuthorDispatcher(local, AuthorScope()).index(page)


@router.get(
    "/{author_id}",
    name="show_author",
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 404)}
)
async def show_author(
        author_id: pydantic.PositiveInt,
        include: Optional[str] = None,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Return details about a specific author identified by its `author_id`

    Users without any tickets are not authors and yield a 404 error.
    """

    return AuthorDispatcher(local, AuthorScope()).show(author_id, include)


@router.get(
    "/{author_id}/tickets",
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 422)}
)
async def list_author_tickets(
        author_id: pydantic.PositiveInt,
        page: pydantic.PositiveInt = 1,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Return one page of the tickets of the given author, optionally filtered and sorted
    """

    return TicketDispatcher(local, OwnerScope(author_id)).index(page)


@router.post(
    "/{author_id}/tickets",
    status_code=201,
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 403, 422)}
)
async def create_author_ticket(
        author_id: pydantic.PositiveInt,
        body: schemas.AuthorTicketCreation,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Create a new ticket for the given author, ignoring any author named in the body
    """

    return TicketDispatcher(local, OwnerScope(author_id)).store(body)


@router.get(
    "/{author_id}/tickets/{ticket_id}",
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 404)}
)
async def show_author_ticket(
        author_id: pydantic.PositiveInt,
        ticket_id: pydantic.PositiveInt,
        include: Optional[str] = None,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Return details about a specific ticket of the given author
    """

    return TicketDispatcher(local, OwnerScope(author_id)).show(ticket_id, include)


@router.put(
    "/{author_id}/tickets/{ticket_id}",
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 403, 404, 422)}
)
async def replace_author_ticket(
        author_id: pydantic.PositiveInt,
        ticket_id: pydantic.PositiveInt,
        body: schemas.TicketUpdate,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Replace all mutable fields of a specific ticket of the given author
    """

    return TicketDispatcher(local, OwnerScope(author_id)).replace(ticket_id, body)


@router.patch(
    "/{author_id}/tickets/{ticket_id}",
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 403, 404, 422)}
)
async def update_author_ticket(
        author_id: pydantic.PositiveInt,
        ticket_id: pydantic.PositiveInt,
        body: schemas.TicketPatch,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Update the given fields of a specific ticket of the given author
    """

    return TicketDispatcher(local, OwnerScope(author_id)).update(ticket_id, body)


@router.delete(
    "/{author_id}/tickets/{ticket_id}",
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 403, 404)}
)
async def delete_author_ticket(
        author_id: pydantic.PositiveInt,
        ticket_id: pydantic.PositiveInt,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Delete a specific ticket of the given author
    """

    return TicketDispatcher(local, OwnerScope(author_id)).delete(ticket_id)
