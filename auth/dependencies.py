"""
auth/dependencies.py -- FastAPI Depends() helper for the token gate.

get_caller_identity() is attached as a router-level dependency to every car
route. It reads "Authorization: Bearer <token>", verifies it with the
TokenSigner held on app.state, and returns the CallerIdentity that the car
service uses as its owner filter.

Any failure raises Unauthorized before the route body runs, so no storage
operation is attempted for an unauthenticated request. The gate keeps no
state of its own: no session lookup, no revocation list, no account read.

Layer rule: no imports from cars/ or storage/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import CallerIdentity
from auth.tokens import TokenSigner
from core.errors import Unauthorized

_BEARER_PREFIX = "bearer "


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    # Scheme name is case-insensitive (RFC 7235).
    if header[: len(_BEARER_PREFIX)].lower() != _BEARER_PREFIX:
        return None
    token = header[len(_BEARER_PREFIX) :].strip()
    return token or None


def get_caller_identity(request: Request) -> CallerIdentity:
    """Require a valid bearer token. Raises Unauthorized otherwise.

    Use as a FastAPI dependency:
        @router.get("/cars/list")
        def route(caller: CallerIdentity = Depends(get_caller_identity)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise Unauthorized("Missing bearer token")
    signer: TokenSigner = request.app.state.signer
    return signer.verify(token)
