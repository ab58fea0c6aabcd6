"""Base domain error and the DRF exception handler.

Every error raised by a service carries a stable ``code``, a short
``message`` and an optional ``description`` with the specifics (which
option ran out, which amounts differed).  The API renders both these
errors and DRF's own exceptions in one envelope::

    {"type": "client_error", "errors": [{"code": ..., "detail": ..., "attr": ...}]}
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = structlog.get_logger(__name__)


class DomainError(Exception):
    """Base class for errors a service raises on purpose."""

    code: str = "DOMAIN-ERROR"
    message: str = "Request could not be processed."
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, description: str = "", *, message: Optional[str] = None) -> None:
        self.description = description
        if message is not None:
            self.message = message
        super().__init__(f"{self.message} {description}".strip())


def _error_type(status_code: int) -> str:
    return "server_error" if status_code >= 500 else "client_error"


def _flatten_validation(detail: Any, attr: Optional[str] = None) -> List[Dict[str, Any]]:
    if isinstance(detail, dict):
        errors: List[Dict[str, Any]] = []
        for key, value in detail.items():
            name = key if attr is None else f"{attr}.{key}"
            errors.extend(_flatten_validation(value, name))
        return errors
    if isinstance(detail, list):
        errors = []
        for item in detail:
            errors.extend(_flatten_validation(item, attr))
        return errors
    return [
        {
            "code": getattr(detail, "code", "invalid"),
            "detail": str(detail),
            "attr": attr,
        }
    ]


def api_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    """REST_FRAMEWORK ``EXCEPTION_HANDLER`` producing the standard envelope."""
    if isinstance(exc, DomainError):
        logger.info(
            "api.domain_error",
            code=exc.code,
            description=exc.description,
            view=context.get("view").__class__.__name__ if context.get("view") else None,
        )
        return Response(
            {
                "type": _error_type(exc.status_code),
                "errors": [
                    {"code": exc.code, "detail": str(exc), "attr": getattr(exc, "attr", None)}
                ],
            },
            status=exc.status_code,
        )

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, ValidationError):
        errors = _flatten_validation(exc.detail)
        error_type = "validation_error"
    elif isinstance(exc, APIException):
        errors = [{"code": exc.default_code, "detail": str(exc.detail), "attr": None}]
        error_type = _error_type(response.status_code)
    else:
        errors = [{"code": "error", "detail": str(exc), "attr": None}]
        error_type = _error_type(response.status_code)

    response.data = {"type": error_type, "errors": errors}
    return response
