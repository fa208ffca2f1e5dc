"""
auth/service.py -- Account registration and password login.

IdentityService is the only place that combines the user store, bcrypt and
the token signer. Routes call register() and authenticate(); neither
returns or logs the plaintext password.

Username enumeration:
  authenticate() raises the same AuthenticationError for an unknown username
  and for a wrong password, and it runs bcrypt in both branches. When the
  account does not exist the password is checked against a dummy hash
  computed once at construction, so response time does not reveal whether
  the username is registered.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.store import UserStore
from auth.tokens import MAX_PASSWORD_BYTES, TokenSigner, hash_password, verify_password
from core.errors import AuthenticationError, ValidationError

logger = logging.getLogger("carvault.auth")


class IdentityService:
    def __init__(self, store: UserStore, signer: TokenSigner, bcrypt_rounds: int = 12) -> None:
        self._store = store
        self._signer = signer
        self._rounds = bcrypt_rounds
        self._dummy_hash = hash_password("carvault_timing_dummy", rounds=bcrypt_rounds)

    def register(self, username: str | None, password: str | None) -> User:
        """Create an account and return it.

        Raises ValidationError when a field is missing or blank, when the
        password exceeds bcrypt's 72-byte input limit, or when the username
        is already taken.
        """
        if not username or not username.strip():
            raise ValidationError("username is required")
        if not password:
            raise ValidationError("password is required")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")

        user = User(username=username, hashed_password=hash_password(password, rounds=self._rounds))
        try:
            user.id = self._store.create_user(user)
        except IntegrityError as exc:
            raise ValidationError(f"username '{username}' already exists") from exc

        created = self._store.get_by_id(user.id)
        logger.info("Registered user %s (%s)", username, user.id)
        return created if created is not None else user

    def authenticate(self, username: str | None, password: str | None) -> str:
        """Verify credentials and return a freshly signed token.

        Raises AuthenticationError("Invalid credentials") on any mismatch and
        ValidationError when either field is missing from the request.
        """
        if username is None or password is None:
            raise ValidationError("username and password are required")
        user = self._store.get_by_username(username)
        if user is None:
            # Equalize timing -- do NOT return early before running bcrypt.
            verify_password(password, self._dummy_hash)
            logger.info("Login failed for unknown username")
            raise AuthenticationError("Invalid credentials")
        if not verify_password(password, user.hashed_password):
            logger.info("Login failed for user %s", user.id)
            raise AuthenticationError("Invalid credentials")
        return self._signer.sign(user.id)
