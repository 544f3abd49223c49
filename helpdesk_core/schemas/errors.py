"""
Helpdesk error and envelope schemas
"""

from typing import Any, Dict, List, Optional

import pydantic


class ValidationErrorDetail(pydantic.BaseModel):
    field: str
    message: str


class APIError(pydantic.BaseModel):
    """
    APIError: shared model for all types of API failures

    Whenever some kind of problem occurs during request handling, the
    error classifier takes over and the answer will contain a list of
    these models in the `errors` field of the envelope. Fields of this
    model can be used for client-side error handling and might even be
    shown to end users in an adequate form.

    The field `type` contains the name of the exception class that caused
    the failure. The field `status` contains the HTTP status code of the
    response, where `0` marks a failure that couldn't be mapped to any
    stable status code (which should be considered a server-side bug).
    The field `message` contains a short human-readable informational
    message, while `timestamp` is the ISO 8601 time of the failure in UTC.
    The optional fields `validation_errors`, `source` and `allowed_methods`
    are only present for validation errors, unknown resources or endpoints
    and rejected request methods, respectively.
    """

    type: str
    status: pydantic.NonNegativeInt
    message: str
    timestamp: str
    validation_errors: Optional[List[ValidationErrorDetail]] = None
    source: Optional[str] = None
    allowed_methods: Optional[str] = None


class Envelope(pydantic.BaseModel):
    """
    Envelope: wrapper around every response body of the API

    Exactly one of the fields `data` or `errors` is present in any
    envelope. Successful responses carry their payload in `data`, where
    list responses additionally provide `links` and `meta` for pagination.
    Failed responses carry a non-empty list of `APIError` models instead.
    """

    data: Any = None
    errors: Optional[List[APIError]] = None
    links: Optional[Dict[str, Optional[str]]] = None
    meta: Optional[Dict[str, Any]] = None

    @pydantic.model_validator(mode="after")
    def enforce_exclusive_body(self):
        has_data = "data" in self.model_fields_set
        has_errors = "errors" in self.model_fields_set
        if has_data == has_errors:
            raise ValueError("Exactly one of the fields 'data' and 'errors' must be set")
        if has_errors and not self.errors:
            raise ValueError("Field 'errors' must not be empty")
        if has_errors and (self.links is not None or self.meta is not None):
            raise ValueError("Error envelopes must not carry pagination details")
        return self

    def export(self) -> Dict[str, Any]:
        """
        Return the JSON-compatible body with unset optional fields left out
        """

        if self.errors:
            return {"errors": [error.model_dump(mode="json", exclude_none=True) for error in self.errors]}
        body = {"data": self.data}
        if self.links is not None:
            body["links"] = self.links
        if self.meta is not None:
            body["meta"] = self.meta
        return body
