"""
api/routes/v1/users.py -- Account registration and login endpoints.

Routes:
  POST /users/signup  -- create an account; 201 {message, user}
  POST /users/login   -- exchange credentials for a bearer token; 200 {token}

Security:
  Both routes are public and rate-limited per client IP (login_rate_limit).
  Login returns the same 401 body for an unknown username and a wrong
  password; IdentityService.authenticate() also equalizes bcrypt timing.
  Cache-Control: no-store on the login response keeps tokens out of caches.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import Credentials, LoginResponse, SignupResponse, UserResponse
from auth.service import IdentityService
from core.errors import error_context

router = APIRouter(prefix="/users")


# @limiter.limit must sit under @router.post so the route FastAPI registers is
# the slowapi wrapper. The limit is callable, and slowapi evaluates callable
# limits only inside that wrapper, never in SlowAPIMiddleware.
@router.post("/signup", response_model=SignupResponse, status_code=201)
@limiter.limit(login_rate_limit)
def signup(request: Request, body: Credentials) -> SignupResponse:
    """Register a new account. The response never contains the password hash."""
    identity: IdentityService = request.app.state.identity
    with error_context("Error creating user"):
        user = identity.register(body.username, body.password)
    return SignupResponse(message="User created", user=UserResponse.from_user(user))


@router.post("/login", response_model=LoginResponse)
@limiter.limit(login_rate_limit)
def login(request: Request, body: Credentials) -> JSONResponse:
    """Authenticate with username and password and return a 30-day token."""
    identity: IdentityService = request.app.state.identity
    with error_context("Error logging in"):
        token = identity.authenticate(body.username, body.password)
    resp = JSONResponse(status_code=200, content=LoginResponse(token=token).model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp
