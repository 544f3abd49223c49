"""
Resource action dispatcher shared by all resource routers

Each action runs through the same steps: narrowing the resource set by
the dispatcher's scope, looking up the target (or validating a creation
payload), asking the gate for the principal's ability, mapping the payload
to model attributes, persisting the changes and finally wrapping the
result in a success envelope. Faults are only raised here, never turned
into responses: that's the job of the error classifier of the application.
"""

import logging
from typing import Any, ClassVar, Dict, Iterable, Optional, Set, Type

import sqlalchemy.orm
from fastapi.responses import JSONResponse

from . import envelope, helpers
from .base import Ability, AuthorizationDenied, ValidationFailed
from .auth import hash_password
from .dependency import LocalRequestData
from .filters import QueryFilter, TicketFilter, UserFilter
from .policies import Capability
from .resources import AuthorResource, JsonResource, TicketResource, UserResource
from .scopes import Scope
from ..persistence import models
from ..schemas import incoming


logger = logging.getLogger(__name__)


def parse_includes(include: Optional[str], known: Iterable[str]) -> Set[str]:
    """
    Return the known relationship names of an ``include`` query parameter

    The parameter may contain multiple names separated by commas or
    dots, which are compared case-insensitively. Unknown names are ignored.
    """

    if not include:
        return set()
    requested = {part.strip().lower() for part in include.replace(".", ",").split(",")}
    return {name for name in known if name.lower() in requested}


class ResourceDispatcher:
    """
    Dispatcher of the list, show, store, replace, update and delete actions of one resource type

    :param local: contextual local data of the current request
    :param scope: optional scope that narrows the resources before any lookup
    """

    model: ClassVar[Type[models.Base]]
    resource: ClassVar[Type[JsonResource]]
    filter: ClassVar[Type[QueryFilter]]
    relationships: ClassVar[Dict[str, str]] = {}
    deleted_message: ClassVar[str]

    def __init__(self, local: LocalRequestData, scope: Optional[Scope] = None):
        self.local = local
        self.scope = scope or Scope()

    def query(self, includes: Iterable[str] = ()) -> sqlalchemy.orm.Query:
        query = self.scope.narrow(self.local.session.query(self.model), self.model)
        for name in includes:
            query = query.options(sqlalchemy.orm.selectinload(getattr(self.model, self.relationships[name])))
        return query

    def authorize(self, ability: Ability, target):
        if not self.local.gate.authorize(self.local.principal, ability, target):
            raise AuthorizationDenied(ability, self.model.__name__)

    def prepare(self, ability: Ability, attributes: Dict[str, Any], instance: Optional[models.Base]) -> Dict[str, Any]:
        """
        Check and transform the mapped attributes before they are applied to the (new) instance
        """

        return attributes

    def index(self, page: int) -> JSONResponse:
        self.authorize(Ability.INDEX, self.model)
        query = self.filter(self.local.request.query_params).apply(self.query())
        result = helpers.paginate(query, page, self.local.config.general.page_size, self.local.request)
        return envelope.success(
            self.resource.collection(result.items, self.local.request),
            links=result.links,
            meta=result.meta
        )

    def show(self, object_id: int, include: Optional[str] = None) -> JSONResponse:
        includes = parse_includes(include, self.relationships)
        obj = helpers.return_one(self.query(includes), self.model, object_id)
        self.authorize(Ability.SHOW, obj)
        return envelope.success(self.resource(obj, self.local.request, includes).to_dict())

    def store(self, payload: incoming.ResourcePayload) -> JSONResponse:
        self.authorize(Ability.STORE, self.model)
        attributes = self.prepare(Ability.STORE, payload.mapped_attributes(**self.scope.inject()), None)
        obj = helpers.persist(self.local.session, self.model(**attributes), logger)
        return envelope.success(self.resource(obj, self.local.request).to_dict(), status_code=201)

    def replace(self, object_id: int, payload: incoming.ResourcePayload) -> JSONResponse:
        return self._modify(Ability.REPLACE, object_id, payload)

    def update(self, object_id: int, payload: incoming.ResourcePayload) -> JSONResponse:
        return self._modify(Ability.UPDATE, object_id, payload)

    def delete(self, object_id: int) -> JSONResponse:
        obj = helpers.return_one(self.query(), self.model, object_id)
        self.authorize(Ability.DELETE, obj)
        helpers.delete_one(self.local.session, obj, logger)
        return envelope.ok(self.deleted_message)

    def _modify(self, ability: Ability, object_id: int, payload: incoming.ResourcePayload) -> JSONResponse:
        obj = helpers.return_one(self.query(), self.model, object_id)
        self.authorize(ability, obj)
        attributes = self.prepare(ability, payload.mapped_attributes(), obj)
        for key, value in attributes.items():
            setattr(obj, key, value)
        obj = helpers.persist(self.local.session, obj, logger)
        return envelope.success(self.resource(obj, self.local.request).to_dict())


class TicketDispatcher(ResourceDispatcher):
    model = models.Ticket
    resource = TicketResource
    filter = TicketFilter
    relationships = {"author": "author"}
    deleted_message = "Ticket successfully deleted"

    def prepare(self, ability: Ability, attributes: Dict[str, Any], instance: Optional[models.Base]) -> Dict[str, Any]:
        if "user_id" not in attributes:
            return attributes
        author_id = attributes["user_id"]
        principal = self.local.principal
        required = Capability.CREATE_TICKET if ability == Ability.STORE else Capability.UPDATE_TICKET
        if author_id != principal.id and not principal.can(required):
            raise ValidationFailed({incoming.AUTHOR_FIELD: ["You may only assign yourself as author."]})
        if self.local.session.get(models.User, author_id) is None:
            raise ValidationFailed({incoming.AUTHOR_FIELD: ["The selected author does not exist."]})
        return attributes


class UserDispatcher(ResourceDispatcher):
    model = models.User
    resource = UserResource
    filter = UserFilter
    relationships = {"tickets": "tickets"}
    deleted_message = "User successfully deleted"

    def prepare(self, ability: Ability, attributes: Dict[str, Any], instance: Optional[models.Base]) -> Dict[str, Any]:
        if "password" in attributes:
            attributes["password"] = hash_password(attributes["password"])
        return attributes


class AuthorDispatcher(UserDispatcher):
    """
    Read-only view of the users who authored at least one ticket
    """

    resource = AuthorResource
