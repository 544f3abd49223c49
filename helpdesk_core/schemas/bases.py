"""
Helpdesk schemas for the base system

This module contains the schema of the acting principal as
well as the schemas describing paginated list responses.
"""

from typing import FrozenSet, Optional

import pydantic


class Principal(pydantic.BaseModel):
    """
    Authenticated user issuing a request together with its granted capabilities
    """

    model_config = pydantic.ConfigDict(frozen=True)

    id: pydantic.PositiveInt
    name: str
    is_manager: bool = False
    abilities: FrozenSet[str] = frozenset()

    def can(self, capability: str) -> bool:
        return capability in self.abilities


class PageLinks(pydantic.BaseModel):
    first: str
    last: str
    prev: Optional[str] = None
    next: Optional[str] = None


class PageMeta(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(populate_by_name=True)

    current_page: pydantic.PositiveInt
    last_page: pydantic.PositiveInt
    per_page: pydantic.PositiveInt
    total: pydantic.NonNegativeInt
    # first and last item positions on this page, unset for empty pages
    from_: Optional[pydantic.PositiveInt] = pydantic.Field(None, alias="from")
    to: Optional[pydantic.PositiveInt] = None
