"""
Helpdesk REST API base library
"""

import enum
import secrets
from typing import Any, Dict, List, Mapping, Optional

from fastapi import HTTPException


runtime_key = secrets.token_hex(32)


@enum.unique
class Ability(enum.Enum):
    """
    Closed set of actions that can be checked against a resource (type)
    """

    INDEX = "index"
    SHOW = "show"
    STORE = "store"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"


class APIException(HTTPException):
    """
    Base class for any kind of fault raised by the API itself
    """

    def __init__(
            self,
            status_code: int,
            detail: Optional[str] = None,
            headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class AuthenticationRequired(APIException):
    """
    Exception when a request didn't carry valid credentials
    """

    def __init__(self, detail: Optional[str] = None):
        super().__init__(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationDenied(APIException):
    """
    Exception when the policy of a resource denied an ability to the principal
    """

    def __init__(self, ability: Ability, resource: str):
        super().__init__(status_code=403, detail=f"{ability.value} on {resource}")
        self.ability = ability
        self.resource = resource


class ResourceNotFound(APIException):
    """
    Exception when a requested model instance was not found (or is hidden by its scope)
    """

    def __init__(self, model: str, detail: Optional[str] = None):
        super().__init__(status_code=404, detail=detail)
        self.model = model


class ValidationFailed(APIException):
    """
    Exception for rejected input, carrying the messages per affected field

    The order of the fields as well as the order of the messages
    of every single field is kept, since it's shown to clients.
    """

    def __init__(self, errors: Mapping[str, List[str]]):
        super().__init__(status_code=422, detail="validation failed")
        self.errors: Dict[str, List[str]] = {field: list(messages) for field, messages in errors.items()}
