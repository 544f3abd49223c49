"""
Helpdesk core REST API definitions

The API exposes tickets and the users who author them as resource
collections. Every response uses the same envelope: successful responses
carry a `data` member, failed requests carry a list of `errors` instead.
"""

import logging.config
from typing import Any, Callable, Dict, Optional, Type

import fastapi
import sqlalchemy.exc
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import ErrorClassifier
from .policies import Gate
from .routers import router
from .. import schemas, __version__
from ..persistence import database
from ..settings import Settings
from ..version import API_PREFIX


API_V1_DOC = """Helpdesk core REST API definition version 1

This API requires authentication using JSON web tokens, which must be
included in the `Authorization` header with the type `Bearer`. The only
exception is the health endpoint. The capabilities granted by a token
decide which actions are allowed: managers may handle all tickets and
users, while everybody else may only create and handle their own tickets.

Every error response uses the same structure: a list of `errors`, where
each entry has a `type`, `status`, `message` and `timestamp` together with
optional details like `validation_errors`. The following statuses are used:

1. `401` (Unauthorized) if the bearer token is missing, invalid or expired.
2. `403` (Forbidden) if the principal may not perform the requested action.
3. `404` (Not Found) if a resource doesn't exist or isn't visible below
   the requested author, or if the endpoint doesn't exist at all.
4. `405` (Method Not Allowed) together with the list of allowed methods.
5. `409` (Conflict) if a unique or foreign key constraint would be violated.
6. `422` (Unprocessable Entity) if the request contains invalid data.

Unexpected server-side faults yield a `500` response whose error object has
the status `0`, since there's no stable status code to describe them.
"""


def _make_app(
        title: str,
        version: str,
        description: str,
        classifier: ErrorClassifier,
        gate: Gate,
        root_redirect: bool = True,
        api_class: Optional[Type[fastapi.FastAPI]] = None,
        **kwargs
) -> fastapi.FastAPI:
    if api_class is None:
        api_class = fastapi.FastAPI
    app = api_class(
        title=title,
        version=version,
        description=description,
        responses={500: {"model": schemas.Envelope}},
        **kwargs
    )
    app.state.gate = gate

    handlers: Dict[Type[Exception], Callable[..., Any]] = {
        StarletteHTTPException: classifier.handle,
        RequestValidationError: classifier.handle,
        sqlalchemy.exc.SQLAlchemyError: classifier.handle,
        Exception: classifier.handle
    }
    for exc in handlers:
        app.add_exception_handler(exc, handlers[exc])

    if root_redirect:
        @app.get("/", include_in_schema=False)
        async def redirect_root():
            return fastapi.responses.RedirectResponse("./docs")

    return app


def create_app(
        settings: Optional[Settings] = None,
        configure_logging: bool = True,
        configure_database: bool = True,
        gate: Optional[Gate] = None
) -> fastapi.FastAPI:
    """
    Create a new ``FastAPI`` instance using the specified settings and switches

    This function is conveniently used to allow overwriting the settings
    before launching the application as well as to allow multiple ``FastAPI``
    instances in one program, which in turn makes unit testing much easier.

    :param settings: optional Settings instance (would be created if not present)
    :param configure_logging: switch whether to configure logging
    :param configure_database: switch whether to configure the database
    :param gate: optional authorization gate with custom policies
    :return: new ``FastAPI`` instance
    """

    if settings is None:
        settings = Settings()

    if configure_logging:
        logging.config.dictConfig(settings.logging.model_dump())
    logger = logging.getLogger(__name__)
    logger.debug("Starting application...")

    if configure_database:
        database.init(settings.database.connection, settings.database.debug_sql)

    app = _make_app(
        title="Helpdesk core REST API",
        version=__version__,
        description=API_V1_DOC,
        classifier=ErrorClassifier(logging.getLogger("helpdesk_core.faults")),
        gate=gate or Gate()
    )
    app.state.settings = settings
    app.include_router(router, prefix=API_PREFIX)
    return app


class APIWrapper:
    """
    Wrapper class around the FastAPI main object, accessible via the ``app`` property

    There should be only one global instance of this object, which should only
    export its functionality to hold the ``app`` property. This wrapper can be
    used to allow easy command-line usage via ``uvicorn`` calls. Example:

    .. code-block::

        uvicorn helpdesk_core.api.api:api.app
    """

    def __init__(self):
        self._app: Optional[fastapi.FastAPI] = None

    @property
    def app(self) -> fastapi.FastAPI:
        """
        Return the ``app`` instance (or create it with default settings if it doesn't exist)
        """

        if self._app is not None:
            return self._app
        self._app = create_app()
        return self._app


api = APIWrapper()
