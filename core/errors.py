"""
core/errors.py -- Domain exceptions shared by the identity and car layers.

Services raise these; api/main.py owns the single exception handler that
turns them into HTTP responses. Each class carries the status code it maps
to so the handler needs no lookup table.

error_context() is the per-route boundary: it stamps the operation message
("Error creating car") onto any CarVaultError raised inside it and converts
storage/OS failures into OperationError so they render as 400, not 500.

Layer rule: no imports from api/, auth/, cars/, or storage/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger("carvault.errors")


class CarVaultError(Exception):
    """Base class for every error the API layer knows how to render."""

    status_code: int = 400
    default_message: str = "Request failed"

    def __init__(self, detail: str = "", message: str | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.message = message or self.default_message


class ValidationError(CarVaultError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(CarVaultError):
    status_code = 401
    default_message = "Invalid credentials"


class Unauthorized(CarVaultError):
    status_code = 401
    default_message = "Authentication required"


class NotFound(CarVaultError):
    status_code = 404
    default_message = "Not found"


class OperationError(CarVaultError):
    status_code = 400
    default_message = "Operation failed"


# Errors whose message is fixed by contract and must not be overwritten by
# the surrounding operation's label.
_FIXED_MESSAGE = (AuthenticationError, Unauthorized, NotFound)


@contextmanager
def error_context(message: str) -> Iterator[None]:
    """Label errors raised inside the block with the operation's message.

    Usage:
        with error_context("Error creating car"):
            car = service.create(...)
    """
    try:
        yield
    except _FIXED_MESSAGE:
        raise
    except CarVaultError as exc:
        exc.message = message
        raise
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("%s: %s", message, exc)
        raise OperationError(str(exc), message=message) from exc
