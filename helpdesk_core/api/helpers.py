"""
Generic helper library for the core REST API
"""

import math
import logging
from typing import Any, Dict, List, NamedTuple, Optional, Type

import sqlalchemy.exc
import sqlalchemy.orm
from fastapi import Request

from .base import ResourceNotFound
from .. import schemas
from ..persistence import models
from ..misc.logger import enforce_logger


class Page(NamedTuple):
    """
    One page of query results together with its navigation links and metadata
    """

    items: List[models.Base]
    links: Dict[str, Optional[str]]
    meta: Dict[str, Any]


def return_one(query: sqlalchemy.orm.Query, model: Type[models.Base], object_id: int) -> models.Base:
    """
    Return the object of a given model that's identified by its object ID within the query

    :param query: (possibly narrowed) query of the model
    :param model: class of a SQLAlchemy model
    :param object_id: internal ID (primary key in the database) of the model
    :return: resulting entity as SQLAlchemy model
    :raises ResourceNotFound: when the specified object ID returned no result
    """

    obj = query.filter(model.id == object_id).one_or_none()
    if obj is None:
        raise ResourceNotFound(model.__name__, f"{model.__name__} with ID {object_id!r}")
    return obj


def persist(session: sqlalchemy.orm.Session, obj: models.Base, logger: Optional[logging.Logger] = None) -> models.Base:
    """
    Add the object to the session, commit it and refresh it from the database

    :raises sqlalchemy.exc.SQLAlchemyError: after rolling back the session on database failures
    """

    enforce_logger(logger).debug(f"Persisting model {obj!r}...")
    try:
        session.add(obj)
        session.commit()
    except sqlalchemy.exc.SQLAlchemyError:
        session.rollback()
        raise
    session.refresh(obj)
    return obj


def delete_one(session: sqlalchemy.orm.Session, obj: models.Base, logger: Optional[logging.Logger] = None):
    """
    Delete the instance of a model from the database

    :raises sqlalchemy.exc.SQLAlchemyError: after rolling back the session on database failures
    """

    enforce_logger(logger).debug(f"Deleting model {obj!r}...")
    try:
        session.delete(obj)
        session.commit()
    except sqlalchemy.exc.SQLAlchemyError:
        session.rollback()
        raise


def paginate(query: sqlalchemy.orm.Query, page: int, per_page: int, request: Request) -> Page:
    """
    Select one page of the query results and describe its position among the other pages

    Pages after the last one are valid, but empty.

    :param query: fully filtered and ordered query
    :param page: number of the requested page (starting at 1)
    :param per_page: maximum number of items per page
    :param request: current request, used to build the links to other pages
    """

    total = query.order_by(None).count()
    last_page = max(1, math.ceil(total / per_page))
    items = query.offset((page - 1) * per_page).limit(per_page).all()

    def link(number: int) -> str:
        return str(request.url.include_query_params(page=number))

    links = schemas.PageLinks(
        first=link(1),
        last=link(last_page),
        prev=link(page - 1) if page > 1 else None,
        next=link(page + 1) if page < last_page else None
    )
    first_index = (page - 1) * per_page + 1
    meta = schemas.PageMeta(
        current_page=page,
        last_page=last_page,
        per_page=per_page,
        total=total,
        from_=first_index if items else None,
        to=first_index + len(items) - 1 if items else None
    )
    return Page(items=items, links=links.model_dump(), meta=meta.model_dump(by_alias=True))
