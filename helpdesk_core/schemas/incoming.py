"""
Helpdesk schemas for incoming (not yet existing or changed) models

Every payload follows the same document structure, where the mutable
attributes are placed in ``data.attributes`` and references to other
resources in ``data.relationships``. The ``attribute_map`` of a payload
class defines which dotted paths of the document are accepted and to
which model attributes they will be mapped before persisting them.
"""

from typing import Any, ClassVar, Dict, Literal, Optional

import pydantic


TicketStatus = Literal["A", "C", "H", "X"]
"""Status of a ticket: active, completed, on hold or cancelled"""

_title = pydantic.constr(strip_whitespace=True, min_length=1, max_length=255)
_description = pydantic.constr(strip_whitespace=True, min_length=1)
_name = pydantic.constr(strip_whitespace=True, min_length=1, max_length=255)
_email = pydantic.constr(strip_whitespace=True, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_password = pydantic.constr(min_length=8, max_length=64)

TICKET_ATTRIBUTES: Dict[str, str] = {
    "data.attributes.title": "title",
    "data.attributes.description": "description",
    "data.attributes.status": "status",
    "data.relationships.author.data.id": "user_id"
}

USER_ATTRIBUTES: Dict[str, str] = {
    "data.attributes.name": "name",
    "data.attributes.email": "email",
    "data.attributes.isManager": "is_manager",
    "data.attributes.password": "password"
}

AUTHOR_FIELD: str = "data.relationships.author.data.id"


class ResourcePayload(pydantic.BaseModel):
    """
    Base class for request documents that can be mapped to model attributes
    """

    model_config = pydantic.ConfigDict(populate_by_name=True)

    attribute_map: ClassVar[Dict[str, str]] = {}

    def mapped_attributes(self, **overrides: Any) -> Dict[str, Any]:
        """
        Return the model attributes found in the document, updated by the overrides

        Paths of the attribute map that are not part of the document
        (because they were omitted or explicitly set to null) are skipped.
        """

        document = self.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)
        attributes = {}
        for path, attribute in self.attribute_map.items():
            value = document
            for key in path.split("."):
                if not isinstance(value, dict) or key not in value:
                    break
                value = value[key]
            else:
                attributes[attribute] = value
        attributes.update(overrides)
        return attributes


class Identifier(pydantic.BaseModel):
    id: pydantic.PositiveInt


class Linkage(pydantic.BaseModel):
    data: Identifier


class TicketRelationships(pydantic.BaseModel):
    author: Linkage


class TicketPatchRelationships(pydantic.BaseModel):
    author: Optional[Linkage] = None


class TicketAttributes(pydantic.BaseModel):
    title: _title
    description: _description
    status: TicketStatus


class TicketPatchAttributes(pydantic.BaseModel):
    title: Optional[_title] = None
    description: Optional[_description] = None
    status: Optional[TicketStatus] = None


class TicketCreationDocument(pydantic.BaseModel):
    attributes: TicketAttributes
    relationships: TicketRelationships


class AuthorTicketCreationDocument(pydantic.BaseModel):
    attributes: TicketAttributes
    relationships: Optional[TicketPatchRelationships] = None


class TicketPatchDocument(pydantic.BaseModel):
    attributes: Optional[TicketPatchAttributes] = None
    relationships: Optional[TicketPatchRelationships] = None


class TicketCreation(ResourcePayload):
    attribute_map = TICKET_ATTRIBUTES
    data: TicketCreationDocument


class AuthorTicketCreation(ResourcePayload):
    """
    Ticket creation below an author, who is taken from the path instead of the document
    """

    attribute_map = TICKET_ATTRIBUTES
    data: AuthorTicketCreationDocument


class TicketUpdate(ResourcePayload):
    attribute_map = TICKET_ATTRIBUTES
    data: TicketCreationDocument


class TicketPatch(ResourcePayload):
    attribute_map = TICKET_ATTRIBUTES
    data: TicketPatchDocument


class UserAttributes(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(populate_by_name=True)

    name: _name
    email: _email
    password: _password
    is_manager: bool = pydantic.Field(False, alias="isManager")


class UserUpdateAttributes(UserAttributes):
    is_manager: bool = pydantic.Field(alias="isManager")


class UserPatchAttributes(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(populate_by_name=True)

    name: Optional[_name] = None
    email: Optional[_email] = None
    password: Optional[_password] = None
    is_manager: Optional[bool] = pydantic.Field(None, alias="isManager")


class UserCreationDocument(pydantic.BaseModel):
    attributes: UserAttributes


class UserUpdateDocument(pydantic.BaseModel):
    attributes: UserUpdateAttributes


class UserPatchDocument(pydantic.BaseModel):
    attributes: Optional[UserPatchAttributes] = None


class UserCreation(ResourcePayload):
    attribute_map = USER_ATTRIBUTES
    data: UserCreationDocument


class UserUpdate(ResourcePayload):
    attribute_map = USER_ATTRIBUTES
    data: UserUpdateDocument


class UserPatch(ResourcePayload):
    attribute_map = USER_ATTRIBUTES
    data: UserPatchDocument
