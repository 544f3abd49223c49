"""
Scope resolvers narrowing the set of resources a dispatcher works on

A scope is applied to every query before any lookup takes place. A
resource outside the scope is therefore handled exactly like a resource
that doesn't exist at all, so that the existence of other people's
resources isn't leaked through author-scoped routes.
"""

from typing import Any, Dict, Type

import sqlalchemy.orm

from ..persistence import models


class Scope:
    """
    Scope without any restriction
    """

    def narrow(self, query: sqlalchemy.orm.Query, model: Type[models.Base]) -> sqlalchemy.orm.Query:
        return query

    def inject(self) -> Dict[str, Any]:
        """
        Return the attributes that new instances created within this scope must have
        """

        return {}


class OwnerScope(Scope):
    """
    Scope restricting resources to those referencing the given owner in one of their columns
    """

    def __init__(self, owner_id: int, column: str = "user_id"):
        self.owner_id = owner_id
        self.column = column

    def narrow(self, query: sqlalchemy.orm.Query, model: Type[models.Base]) -> sqlalchemy.orm.Query:
        return query.filter(getattr(model, self.column) == self.owner_id)

    def inject(self) -> Dict[str, Any]:
        return {self.column: self.owner_id}

    def __repr__(self) -> str:
        return f"OwnerScope({self.column}={self.owner_id})"


class AuthorScope(Scope):
    """
    Scope restricting users to those who authored at least one ticket
    """

    def narrow(self, query: sqlalchemy.orm.Query, model: Type[models.Base]) -> sqlalchemy.orm.Query:
        return query.filter(models.User.tickets.any())
