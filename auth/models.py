"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in cars/models.py -- dataclasses own domain shape; stores and services do
the work.

Layer rule: no imports from api/, cars/, or storage/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered account.

    hashed_password is the bcrypt hash; the plaintext never reaches this
    object. id is None before the record is written to the database.
    """

    username: str
    hashed_password: str
    id: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class CallerIdentity:
    """The verified identity attached to a request by the token gate.

    Carries only the account id from the token. Every car store query uses
    it as the owner filter.
    """

    user_id: str
