"""
Helpdesk API dependency library
"""

import logging
from typing import Generator, Optional

import sqlalchemy.exc
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from . import auth, base
from .policies import Gate
from .. import schemas
from ..persistence import database, models
from ..settings import Settings


_bearer = HTTPBearer(auto_error=False)


def get_session() -> Generator[Session, None, None]:
    """
    Return a generator to handle database sessions gracefully
    """

    logger = logging.getLogger(__name__)
    session = database.get_new_session()

    try:
        yield session
    except sqlalchemy.exc.SQLAlchemyError as exc:
        logger.debug(f"Rolling back session after {type(exc).__name__}")
        session.rollback()
        raise
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


class MinimalRequestData:
    """
    Collection of minimal dependencies used only for internal functionalities
    """

    def __init__(self, request: Request, session: Session = Depends(get_session)):
        self.request = request
        self.session = session

    @property
    def config(self) -> Settings:
        config = getattr(self.request.app.state, "settings", None)
        if config is None:
            config = Settings()
            self.request.app.state.settings = config
        return config

    @property
    def gate(self) -> Gate:
        return self.request.app.state.gate


def get_principal(
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
        session: Session = Depends(get_session)
) -> schemas.Principal:
    """
    Determine the principal issuing the request from its bearer token

    :raises AuthenticationRequired: when the token is missing, invalid or its user doesn't exist
    """

    if credentials is None or not credentials.credentials:
        raise base.AuthenticationRequired("Missing bearer token")
    config = MinimalRequestData(request, session).config
    claims = auth.decode_access_token(credentials.credentials, config.server.secret_key)
    user = session.get(models.User, claims["sub"])
    if user is None:
        raise base.AuthenticationRequired(f"Token owner {claims['sub']} doesn't exist")
    return schemas.Principal(
        id=user.id,
        name=user.name,
        is_manager=user.is_manager,
        abilities=frozenset(claims.get("abilities") or [])
    )


class LocalRequestData(MinimalRequestData):
    """
    Collection of core dependencies used by all path operations

    This class stores references to various important objects that
    will almost certainly be used by request handlers (path operations).
    Note that any dependency added here will be added to the OpenAPI
    definition, if it refers to a Query, Header, Path or Cookie.
    """

    def __init__(
            self,
            request: Request,
            session: Session = Depends(get_session),
            principal: schemas.Principal = Depends(get_principal)
    ):
        super().__init__(request, session)
        self.principal: schemas.Principal = principal
