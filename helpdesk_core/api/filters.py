"""
Declarative query filters for list endpoints

Filters are given as query parameters in the form ``filter[name]=value``
and sorting as ``sort=name,-other`` (a leading ``-`` sorts descending).
Unknown filters and unknown sort keys are silently ignored, while
malformed filter values are rejected as validation errors.
"""

import re
import datetime
from typing import Callable, ClassVar, Dict, Mapping, Tuple, Type

import sqlalchemy
import sqlalchemy.orm

from .base import ValidationFailed
from ..persistence import models


_FILTER_PATTERN = re.compile(r"^filter\[(\w+)]$")
_CAMEL_CASE_PATTERN = re.compile(r"(?<!^)(?=[A-Z])")


class QueryFilter:
    """
    Base class for filters applying query parameters to a query of their model
    """

    model: ClassVar[Type[models.Base]]
    filters: ClassVar[Tuple[str, ...]] = ()
    sortable: ClassVar[Dict[str, str]] = {}

    def __init__(self, params: Mapping[str, str]):
        self.params = params

    def apply(self, query: sqlalchemy.orm.Query) -> sqlalchemy.orm.Query:
        for key, value in self.params.items():
            match = _FILTER_PATTERN.match(key)
            if not match:
                continue
            name = _CAMEL_CASE_PATTERN.sub("_", match.group(1)).lower()
            if name in self.filters:
                handler: Callable[[sqlalchemy.orm.Query, str, str], sqlalchemy.orm.Query] = getattr(self, name)
                query = handler(query, value, key)
        if self.params.get("sort"):
            query = self.sort(query, self.params["sort"])
        return query.order_by(self.model.id)

    def sort(self, query: sqlalchemy.orm.Query, value: str) -> sqlalchemy.orm.Query:
        for part in value.split(","):
            name = part.strip().lstrip("-")
            if name not in self.sortable:
                continue
            column = getattr(self.model, self.sortable[name])
            query = query.order_by(sqlalchemy.desc(column) if part.strip().startswith("-") else column)
        return query

    @staticmethod
    def _match(column, value: str):
        if "*" in value:
            return column.like(value.replace("*", "%"))
        return column == value

    @staticmethod
    def _between_days(column, value: str, key: str):
        parts = [part.strip() for part in value.split(",")]
        if len(parts) > 2:
            raise ValidationFailed({key: ["The filter accepts a single date or a range of two dates."]})
        try:
            days = [datetime.date.fromisoformat(part) for part in parts]
        except ValueError:
            raise ValidationFailed({key: ["The filter must contain dates in the format YYYY-MM-DD."]}) from None
        start = datetime.datetime.combine(days[0], datetime.time.min)
        end = datetime.datetime.combine(days[-1], datetime.time.min) + datetime.timedelta(days=1)
        return sqlalchemy.and_(column >= start, column < end)

    def created_at(self, query: sqlalchemy.orm.Query, value: str, key: str) -> sqlalchemy.orm.Query:
        return query.filter(self._between_days(self.model.created, value, key))

    def updated_at(self, query: sqlalchemy.orm.Query, value: str, key: str) -> sqlalchemy.orm.Query:
        return query.filter(self._between_days(self.model.modified, value, key))


class TicketFilter(QueryFilter):
    model = models.Ticket
    filters = ("status", "title", "created_at", "updated_at")
    sortable = {
        "id": "id",
        "title": "title",
        "status": "status",
        "createdAt": "created",
        "updatedAt": "modified"
    }

    def status(self, query: sqlalchemy.orm.Query, value: str, key: str) -> sqlalchemy.orm.Query:
        return query.filter(models.Ticket.status.in_([v.strip() for v in value.split(",")]))

    def title(self, query: sqlalchemy.orm.Query, value: str, key: str) -> sqlalchemy.orm.Query:
        return query.filter(self._match(models.Ticket.title, value))


class UserFilter(QueryFilter):
    model = models.User
    filters = ("id", "name", "email", "created_at", "updated_at")
    sortable = {
        "id": "id",
        "name": "name",
        "email": "email",
        "createdAt": "created",
        "updatedAt": "modified"
    }

    def id(self, query: sqlalchemy.orm.Query, value: str, key: str) -> sqlalchemy.orm.Query:
        try:
            identifiers = [int(v) for v in value.split(",")]
        except ValueError:
            raise ValidationFailed({key: ["The filter must contain a comma-separated list of IDs."]}) from None
        return query.filter(models.User.id.in_(identifiers))

    def name(self, query: sqlalchemy.orm.Query, value: str, key: str) -> sqlalchemy.orm.Query:
        return query.filter(self._match(models.User.name, value))

    def email(self, query: sqlalchemy.orm.Query, value: str, key: str) -> sqlalchemy.orm.Query:
        return query.filter(self._match(models.User.email, value))
