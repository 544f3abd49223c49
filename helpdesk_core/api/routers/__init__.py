"""
Helpdesk router modules for handling requests to various endpoints

This module exports the ``router`` object which includes all known
endpoints and path operations of the current API version.
"""

from fastapi import APIRouter

# The order of the imports defines the order of the endpoints in the OpenAPI documentation
from . import generic, tickets, users, authors


router = APIRouter()
for _module in (generic, tickets, users, authors):
    router.include_router(_module.router)
