"""
API request and response models for CarVault REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are separate from the dataclasses in auth/models.py and
cars/models.py, which own the internal domain representation. Route handlers
map between the two.

Separation of concerns: domain dataclasses = domain truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from auth.models import User
from cars.models import Car

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class Credentials(BaseModel):
    """Request body for POST /users/signup and POST /users/login.

    Both fields are optional at the schema level so a missing field reaches
    IdentityService and comes back as the documented 400, not a 422.
    """

    username: Optional[str] = None
    password: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of an account. The password hash is never part of it."""

    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, username=user.username, created_at=user.created_at or "")


class SignupResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user: UserResponse


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str


class CarResponse(BaseModel):
    """A car listing as returned by every /cars route."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    tags: list[str]
    images: list[str]
    owner_id: str
    created_at: str
    updated_at: str

    @classmethod
    def from_car(cls, car: Car) -> "CarResponse":
        """Build a CarResponse from a domain Car.

        Factory Method -- the mapping lives here, colocated with the output
        model, rather than scattered across route handlers.
        """
        return cls(
            id=car.id,
            title=car.title,
            description=car.description,
            tags=car.tags,
            images=car.images,
            owner_id=car.owner_id,
            created_at=car.created_at,
            updated_at=car.updated_at,
        )


class DeleteResponse(BaseModel):
    """Delete confirmation. deleted is False when no car matched the id."""

    model_config = ConfigDict(frozen=True)

    message: str
    id: str
    deleted: bool


class ErrorResponse(BaseModel):
    """Error envelope returned on 4xx/5xx responses.

    message names the failed operation; error carries the underlying cause
    when there is one worth showing.
    """

    model_config = ConfigDict(frozen=True)

    message: str
    error: Optional[str] = None


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
