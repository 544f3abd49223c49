"""
Error classification and translation for the core REST API

Any exception raised while handling a request, no matter whether it was
raised by the API itself, by FastAPI and Starlette or by the database
layer, is turned into a ``Fault`` of exactly one ``FaultKind``. The
``ErrorClassifier`` translates those faults into error envelopes with
stable structure and status codes and logs diagnostic context about them.
It is registered as exception handler once per application, so that
path operations never have to create error responses themselves.
"""

import enum
import logging
import datetime
import traceback
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple

import sqlalchemy.exc
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import envelope
from .base import AuthenticationRequired, AuthorizationDenied, ResourceNotFound, ValidationFailed
from .. import schemas
from ..misc.logger import enforce_logger


AUTHENTICATION_MESSAGE = "Authentication required. Please provide valid credentials."
AUTHORIZATION_MESSAGE = "You do not have permission to perform this action."
VALIDATION_MESSAGE = "The provided data is invalid."
RESOURCE_NOT_FOUND_MESSAGE = "The requested resource was not found."
ROUTE_NOT_FOUND_MESSAGE = "The requested endpoint '{}' was not found."
METHOD_NOT_ALLOWED_MESSAGE = "The {} method is not allowed for this endpoint."
HTTP_FALLBACK_MESSAGE = "An HTTP error occurred."
DUPLICATE_MESSAGE = "A record with this information already exists."
FOREIGN_KEY_MESSAGE = "Cannot delete this resource because it is referenced by other records."
DATABASE_MESSAGE = "A database error occurred. Please try again later."

_REQUEST_LOCATIONS = ("body", "query", "path", "header", "cookie")


@enum.unique
class FaultKind(enum.Enum):
    AUTHENTICATION_REQUIRED = "AuthenticationRequired"
    AUTHORIZATION_DENIED = "AuthorizationDenied"
    VALIDATION_FAILED = "ValidationFailed"
    RESOURCE_NOT_FOUND = "NotFound(instance)"
    ROUTE_NOT_FOUND = "NotFound(route)"
    METHOD_NOT_ALLOWED = "MethodNotAllowed"
    HTTP_GENERIC = "HttpGeneric"
    PERSISTENCE_DUPLICATE = "PersistenceDuplicate"
    PERSISTENCE_FOREIGN_KEY = "PersistenceForeignKey"
    PERSISTENCE_OTHER = "PersistenceOther"
    UNCATEGORIZED = "Uncategorized"


class RequestContext(NamedTuple):
    """
    Request details attached to classified faults and their log records
    """

    url: str
    uri: str
    method: str
    ip: Optional[str]

    @classmethod
    def from_request(cls, request: Request) -> "RequestContext":
        uri = request.url.path
        if request.url.query:
            uri += "?" + request.url.query
        return cls(
            url=str(request.url),
            uri=uri,
            method=request.method,
            ip=request.client.host if request.client else None
        )


class Fault:
    """
    Classified exception together with its kind-specific details and origin

    :param kind: the single kind of fault this exception represents
    :param cause: the exception which has been raised originally
    :param details: kind-specific details (e.g. validation errors or the SQL statement)
    """

    def __init__(self, kind: FaultKind, cause: BaseException, **details: Any):
        self.kind = kind
        self.cause = cause
        self.details = details
        self.file, self.line = _get_origin(cause)

    @property
    def type(self) -> str:
        return type(self.cause).__name__

    @property
    def qualified_type(self) -> str:
        return f"{type(self.cause).__module__}.{type(self.cause).__qualname__}"

    @classmethod
    def from_exception(cls, exc: BaseException) -> "Fault":
        """
        Determine the kind of the given exception and collect the details relevant for it
        """

        if isinstance(exc, AuthenticationRequired):
            return cls(FaultKind.AUTHENTICATION_REQUIRED, exc)
        if isinstance(exc, AuthorizationDenied):
            return cls(FaultKind.AUTHORIZATION_DENIED, exc)
        if isinstance(exc, ValidationFailed):
            return cls(FaultKind.VALIDATION_FAILED, exc, errors=exc.errors)
        if isinstance(exc, RequestValidationError):
            return cls(FaultKind.VALIDATION_FAILED, exc, errors=_collect_request_errors(exc.errors()))
        if isinstance(exc, ResourceNotFound):
            return cls(FaultKind.RESOURCE_NOT_FOUND, exc, model=exc.model)

        if isinstance(exc, StarletteHTTPException):
            if exc.status_code in (401, 403):
                return cls(FaultKind.AUTHENTICATION_REQUIRED, exc)
            if exc.status_code == 404:
                return cls(FaultKind.ROUTE_NOT_FOUND, exc)
            if exc.status_code == 405:
                return cls(FaultKind.METHOD_NOT_ALLOWED, exc, allowed=(exc.headers or {}).get("Allow"))
            return cls(FaultKind.HTTP_GENERIC, exc, status=exc.status_code, message=exc.detail)

        if isinstance(exc, sqlalchemy.exc.IntegrityError):
            return cls(_get_constraint_kind(exc), exc, sql=exc.statement)
        if isinstance(exc, sqlalchemy.exc.SQLAlchemyError):
            return cls(FaultKind.PERSISTENCE_OTHER, exc, sql=getattr(exc, "statement", None))

        return cls(FaultKind.UNCATEGORIZED, exc)

    def __repr__(self) -> str:
        return f"Fault(kind={self.kind.name}, type={self.type}, line={self.line})"


def flatten_validation_errors(errors: Mapping[str, Sequence[str]]) -> List[schemas.ValidationErrorDetail]:
    """
    Flatten the mapping of fields to their messages into a list, keeping the input order
    """

    return [
        schemas.ValidationErrorDetail(field=field, message=message)
        for field, messages in errors.items()
        for message in messages
    ]


def _collect_request_errors(errors: Sequence[Dict[str, Any]]) -> Dict[str, List[str]]:
    collected = {}
    for error in errors:
        location = list(error.get("loc", ()))
        if error.get("type") == "json_invalid":
            # the second part is the character offset in the undecodable body
            location = location[:1]
        elif len(location) > 1 and location[0] in _REQUEST_LOCATIONS and isinstance(location[1], str):
            location = location[1:]
        field = ".".join(str(part) for part in location) or "request"
        collected.setdefault(field, []).append(error.get("msg", "Invalid value"))
    return collected


def _get_constraint_kind(exc: sqlalchemy.exc.IntegrityError) -> FaultKind:
    original = exc.orig
    state = getattr(original, "pgcode", None) or getattr(original, "sqlstate", None)
    args = getattr(original, "args", ())
    code = args[0] if args and isinstance(args[0], int) else None
    text = str(original).lower()

    if state == "23505" or code == 1062 or "unique constraint failed" in text or "duplicate" in text:
        return FaultKind.PERSISTENCE_DUPLICATE
    if state == "23503" or code in (1451, 1452) or "foreign key constraint failed" in text:
        return FaultKind.PERSISTENCE_FOREIGN_KEY
    return FaultKind.PERSISTENCE_OTHER


def _get_origin(exc: BaseException) -> Tuple[str, int]:
    frames = traceback.extract_tb(exc.__traceback__)
    if not frames:
        return "<unknown>", 0
    return frames[-1].filename, frames[-1].lineno or 0


def _get_timestamp() -> str:
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.isoformat(timespec="microseconds").replace("+00:00", "Z")


class ErrorClassifier:
    """
    Translator of faults into error envelopes, logging to the injected logger

    The translation is total: every fault kind produces a well-formed error
    envelope and the classifier never raises an exception itself. Faults
    that can't be mapped to any known kind get the status ``0``.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = enforce_logger(logger)

    def classify(self, fault: Fault, context: RequestContext) -> schemas.Envelope:
        """
        Create the error envelope for a fault that occurred while handling the given request

        :param fault: classified fault which should be translated
        :param context: information about the request that triggered the fault
        :return: error envelope containing exactly one error object
        """

        kind = fault.kind
        entry: Dict[str, Any] = {"type": fault.type, "timestamp": _get_timestamp()}

        if kind == FaultKind.AUTHENTICATION_REQUIRED:
            self._log(fault, context, "Authentication failed")
            entry.update(status=401, message=AUTHENTICATION_MESSAGE)

        elif kind == FaultKind.AUTHORIZATION_DENIED:
            self._log(fault, context, "Authorization failed")
            entry.update(status=403, message=AUTHORIZATION_MESSAGE)

        elif kind == FaultKind.VALIDATION_FAILED:
            errors = flatten_validation_errors(fault.details.get("errors", {}))
            self._log(fault, context, "Validation failed", errors=[e.model_dump() for e in errors])
            entry.update(status=422, message=VALIDATION_MESSAGE, validation_errors=errors)

        elif kind == FaultKind.RESOURCE_NOT_FOUND:
            entry.update(status=404, message=RESOURCE_NOT_FOUND_MESSAGE, source=fault.details.get("model"))

        elif kind == FaultKind.ROUTE_NOT_FOUND:
            entry.update(status=404, message=ROUTE_NOT_FOUND_MESSAGE.format(context.uri), source="Not Found")

        elif kind == FaultKind.METHOD_NOT_ALLOWED:
            self._log(fault, context, "Method not allowed")
            entry.update(
                status=405,
                message=METHOD_NOT_ALLOWED_MESSAGE.format(context.method),
                allowed_methods=fault.details.get("allowed") or "Unknown"
            )

        elif kind == FaultKind.HTTP_GENERIC:
            self._log(fault, context, "HTTP exception occurred")
            entry.update(
                status=fault.details.get("status", 500),
                message=fault.details.get("message") or HTTP_FALLBACK_MESSAGE
            )

        elif kind == FaultKind.PERSISTENCE_DUPLICATE:
            self._log(fault, context, "Database query failed", sql=fault.details.get("sql"))
            entry.update(status=409, message=DUPLICATE_MESSAGE)

        elif kind == FaultKind.PERSISTENCE_FOREIGN_KEY:
            self._log(fault, context, "Database query failed", sql=fault.details.get("sql"))
            entry.update(status=409, message=FOREIGN_KEY_MESSAGE)

        elif kind == FaultKind.PERSISTENCE_OTHER:
            self._log(fault, context, "Database query failed", sql=fault.details.get("sql"))
            entry.update(status=500, message=DATABASE_MESSAGE)

        else:
            entry.update(status=0, message=str(fault.cause), source=f"Line: {fault.line}: {fault.file}")

        return schemas.Envelope(errors=[schemas.APIError(**entry)])

    async def handle(self, request: Request, exc: Exception) -> JSONResponse:
        """
        Handle any exception by creating the error response for it (usable as FastAPI exception handler)
        """

        result = self.classify(Fault.from_exception(exc), RequestContext.from_request(request))
        response = envelope.error(result.errors)
        if isinstance(exc, StarletteHTTPException) and exc.headers:
            response.headers.update(exc.headers)
        return response

    def _log(self, fault: Fault, context: RequestContext, title: str, **extra: Any):
        log_context = {
            "exception": fault.qualified_type,
            "message": str(fault.cause),
            "file": fault.file,
            "line": fault.line,
            "url": context.url,
            "method": context.method,
            "ip": context.ip
        }
        log_context.update(extra)
        self._logger.warning(
            f"{title}: {fault.type} @ '{context.method} {context.url}'",
            extra={"context": log_context}
        )
