"""
Response envelope builder for all responses of the core REST API
"""

from typing import Any, Dict, List, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .. import schemas


UNMAPPED_TRANSPORT_STATUS: int = 500
"""
transport status code used for error envelopes whose status is ``0`` (unmapped faults)
"""


def success(
        payload: Any,
        status_code: int = 200,
        links: Optional[Dict[str, Optional[str]]] = None,
        meta: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    """
    Wrap the payload in a success envelope, optionally with pagination details
    """

    envelope = schemas.Envelope(data=jsonable_encoder(payload), links=links, meta=meta)
    return JSONResponse(envelope.export(), status_code=status_code)


def ok(message: str) -> JSONResponse:
    """
    Return a success envelope that only contains a confirmation message
    """

    return success({"message": message})


def error(errors: List[schemas.APIError], status_code: Optional[int] = None) -> JSONResponse:
    """
    Wrap the list of error objects in an error envelope

    Without explicit status code, the status of the first error object
    is used. Since the status ``0`` of unmapped faults can't be sent,
    those envelopes are transferred with the status 500 instead.

    :param errors: non-empty list of error objects
    :param status_code: optional status code overwriting the one of the first error object
    :return: JSON response carrying the error envelope
    :raises ValueError: when the list of errors is empty
    """

    envelope = schemas.Envelope(errors=errors)
    if status_code is None:
        status_code = errors[0].status
    return JSONResponse(envelope.export(), status_code=status_code or UNMAPPED_TRANSPORT_STATUS)
