"""
Field-level shaping of database models into their wire representation
"""

import datetime
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Set

from fastapi import Request

from ..persistence import models


def _format_time(value: Optional[datetime.datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


class JsonResource:
    """
    Representation of a single model instance, including its loaded relationships

    :param instance: model instance which should be represented
    :param request: current request, used to build absolute links
    :param includes: names of the relationships that were requested to be included
    :param listing: switch to leave out verbose attributes in list responses
    """

    type: ClassVar[str]
    route_name: ClassVar[str]
    route_parameter: ClassVar[str]

    def __init__(
            self,
            instance: models.Base,
            request: Request,
            includes: Optional[Set[str]] = None,
            listing: bool = False
    ):
        self.instance = instance
        self.request = request
        self.includes = includes or set()
        self.listing = listing

    def link(self) -> str:
        return str(self.request.url_for(self.route_name, **{self.route_parameter: self.instance.id}))

    def attributes(self) -> Dict[str, Any]:
        raise NotImplementedError

    def extend(self, representation: Dict[str, Any]):
        pass

    def to_dict(self) -> Dict[str, Any]:
        representation = {
            "type": self.type,
            "id": self.instance.id,
            "attributes": self.attributes()
        }
        self.extend(representation)
        representation["links"] = {"self": self.link()}
        return representation

    @classmethod
    def collection(cls, instances: Iterable[models.Base], request: Request) -> List[Dict[str, Any]]:
        return [cls(instance, request, listing=True).to_dict() for instance in instances]


class UserResource(JsonResource):
    type = "user"
    route_name = "show_user"
    route_parameter = "user_id"

    def attributes(self) -> Dict[str, Any]:
        return {
            "name": self.instance.name,
            "email": self.instance.email,
            "isManager": self.instance.is_manager,
            "createdAt": _format_time(self.instance.created),
            "updatedAt": _format_time(self.instance.modified)
        }

    def extend(self, representation: Dict[str, Any]):
        if "tickets" in self.includes:
            representation["includes"] = TicketResource.collection(self.instance.tickets, self.request)


class AuthorResource(UserResource):
    route_name = "show_author"
    route_parameter = "author_id"


class TicketResource(JsonResource):
    type = "ticket"
    route_name = "show_ticket"
    route_parameter = "ticket_id"

    def attributes(self) -> Dict[str, Any]:
        attributes = {"title": self.instance.title}
        if not self.listing:
            attributes["description"] = self.instance.description
        attributes.update({
            "status": self.instance.status,
            "createdAt": _format_time(self.instance.created),
            "updatedAt": _format_time(self.instance.modified)
        })
        return attributes

    def extend(self, representation: Dict[str, Any]):
        representation["relationships"] = {
            "author": {
                "data": {"type": "user", "id": self.instance.user_id},
                "links": {"self": str(self.request.url_for("show_author", author_id=self.instance.user_id))}
            }
        }
        if "author" in self.includes:
            representation["includes"] = UserResource(self.instance.author, self.request).to_dict()
