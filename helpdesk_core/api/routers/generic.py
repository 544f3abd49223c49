"""
Helpdesk router module for generic functionalities
"""

from fastapi import APIRouter

from .. import envelope
from ... import schemas


router = APIRouter(tags=["Generic"])


@router.get("/health", response_model=schemas.Envelope)
async def verify_running_backend():
    """
    Return 200 OK with a confirmation message to verify that the service and the middlewares work
    """

    return envelope.ok("OK")
