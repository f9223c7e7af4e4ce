"""
JSON envelope helpers and error responses.
"""

from typing import Any, Dict, Mapping, Optional, Union

import structlog
from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)

NOT_FOUND_MESSAGE = "the requested resource could not be found"
SERVER_ERROR_MESSAGE = "the server encountered a problem and could not process your request"


class FailedValidationError(Exception):
    """Raised when one or more field rules fail."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__(f"failed validation: {', '.join(sorted(self.errors))}")


def envelope(
    status_code: int,
    data: Mapping[str, Any],
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=dict(data), headers=headers)


def error_response(
    status_code: int,
    message: Union[str, Dict[str, str]],
    headers: Optional[Dict[str, str]] = None,
    detail: Optional[str] = None,
) -> JSONResponse:
    content: Dict[str, Any] = {"error": message}
    if detail is not None:
        content["detail"] = detail
    return envelope(status_code, content, headers)


def server_error_response(request: Request, exc: BaseException, debug: bool = False) -> JSONResponse:
    """
    Log an unexpected failure and respond with 500.

    The connection is marked for closing so it is not reused.
    """
    logger.error(
        "Server error",
        error=str(exc),
        error_type=type(exc).__name__,
        request_method=request.method,
        request_url=str(request.url),
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        SERVER_ERROR_MESSAGE,
        headers={"Connection": "close"},
        detail=str(exc) if debug else None,
    )


def not_found_response() -> JSONResponse:
    return error_response(status.HTTP_404_NOT_FOUND, NOT_FOUND_MESSAGE)


def method_not_allowed_response(method: str) -> JSONResponse:
    return error_response(
        status.HTTP_405_METHOD_NOT_ALLOWED,
        f"the {method} method is not supported for this resource",
    )


def failed_validation_response(errors: Dict[str, str]) -> JSONResponse:
    return error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, errors)


def bad_request_response(message: str) -> JSONResponse:
    return error_response(status.HTTP_400_BAD_REQUEST, message)


def body_error_message(errors: list) -> str:
    """
    Describe the first body decoding error in client terms.

    Args:
        errors: Error dictionaries from a RequestValidationError
    """
    if not errors:
        return "body contains badly-formed JSON"

    error = errors[0]
    error_type = error.get("type", "")
    loc = [part for part in error.get("loc", ()) if part != "body"]

    if error_type == "json_invalid":
        return "body contains badly-formed JSON"
    if error_type == "missing" and not loc:
        return "body must not be empty"
    if error_type == "extra_forbidden" and loc:
        return f'body contains unknown key "{loc[-1]}"'
    if loc and isinstance(loc[0], str):
        return f'body contains incorrect JSON type for field "{loc[0]}"'
    return "body must contain a single JSON object"
