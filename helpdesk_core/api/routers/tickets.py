"""
Helpdesk router module for /tickets
"""

import logging
from typing import Optional

import pydantic
from fastapi import APIRouter, Depends

from ..dependency import LocalRequestData
from ..dispatcher import TicketDispatcher
from ... import schemas


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.get(
    "",
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 422)}
)
async def list_tickets(
        page: pydantic.PositiveInt = 1,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Return one page of tickets, optionally filtered and sorted

    Filters are given as `filter[status]`, `filter[title]`, `filter[createdAt]`
    and `filter[updatedAt]`, sorting as `sort=-createdAt,title`, for example.
    """

    return TicketDispatcher(local).index(page)


@router.post(
    "",
    status_code=201,
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 403, 409, 422)}
)
async def create_ticket(body: schemas.TicketCreation, local: LocalRequestData = Depends(LocalRequestData)):
    """
    Create a new ticket

    * `403`: if the principal may not create tickets
    * `422`: if the body is invalid or names a forbidden or unknown author
    """

    return TicketDispatcher(local).store(body)


@router.get(
    "/{ticket_id}",
    name="show_ticket",
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 404)}
)
async def show_ticket(
        ticket_id: pydantic.PositiveInt,
        include: Optional[str] = None,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Return details about a specific ticket identified by its `ticket_id`

    Use `include=author` to embed the ticket's author in the response.
    """

    return TicketDispatcher(local).show(ticket_id, include)


@router.put(
    "/{ticket_id}",
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 403, 404, 422)}
)
async def replace_ticket(
        ticket_id: pydantic.PositiveInt,
        body: schemas.TicketUpdate,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Replace all mutable fields of the ticket identified by its `ticket_id`
    """

    return TicketDispatcher(local).replace(ticket_id, body)


@router.patch(
    "/{ticket_id}",
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 403, 404, 422)}
)
async def update_ticket(
        ticket_id: pydantic.PositiveInt,
        body: schemas.TicketPatch,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Update the given fields of the ticket identified by its `ticket_id`, keeping all others
    """

    return TicketDispatcher(local).update(ticket_id, body)


@router.delete(
    "/{ticket_id}",
    response_model=schemas.Envelope,
    responses={k: {"model": schemas.Envelope} for k in (401, 403, 404)}
)
async def delete_ticket(ticket_id: pydantic.PositiveInt, local: LocalRequestData = Depends(LocalRequestData)):
    """
    Delete the ticket identified by its `ticket_id`

    Deleting the same ticket twice yields a 404 error for the second request.
    """

    return TicketDispatcher(local).delete(ticket_id)
