"""
auth/tokens.py -- Password hashing and JWT signing/verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry exactly two claims, the account
       id ("id") and the expiry ("exp"). Verification raises Unauthorized on
       any failure -- the route layer renders that as 401. There is no
       session table and no revocation list; a token is valid iff its
       signature verifies and it has not expired.

  Passwords: bcrypt, used directly rather than through passlib. passlib's
       wrap-bug detection builds a password longer than 72 bytes, which
       bcrypt 4.x rejects. The cost factor comes from Settings.bcrypt_rounds
       so tests can run with the minimum of 4.

  SECRET_KEY: never read here. TokenSigner receives the key and lifetime at
       construction (see api/main.lifespan), so this module has no global
       configuration state.

Layer rule: no imports from api/, cars/, or storage/. Import from core/ is
allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from auth.models import CallerIdentity
from core.errors import Unauthorized

logger = logging.getLogger("carvault.auth")

_ALGORITHM = "HS256"

# bcrypt only looks at the first 72 bytes of its input; longer passwords are
# rejected at registration rather than silently truncated.
MAX_PASSWORD_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. Malformed hashes and over-long
    inputs count as a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


class TokenSigner:
    """Issues and verifies identity tokens for one signing secret.

    Stateless apart from its configuration: any number of workers holding
    the same secret agree on which tokens are valid.
    """

    def __init__(self, secret_key: str, expire_seconds: int) -> None:
        self._secret_key = secret_key
        self._expire_seconds = expire_seconds

    def sign(self, user_id: str) -> str:
        """Encode a signed JWT for user_id, expiring expire_seconds from now."""
        expire = datetime.now(timezone.utc) + timedelta(seconds=self._expire_seconds)
        payload = {"id": user_id, "exp": expire}
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> CallerIdentity:
        """Decode and verify a JWT, returning the caller it identifies.

        Raises Unauthorized for a malformed token, a bad signature, an
        expired token, or a payload without a usable "id" claim.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except JWTError as exc:
            # ExpiredSignatureError and JWTClaimsError both subclass JWTError.
            logger.info("Token rejected: %s", exc)
            raise Unauthorized("Invalid or expired token") from exc
        user_id = payload.get("id")
        if not isinstance(user_id, str) or not user_id:
            raise Unauthorized("Invalid or expired token")
        if "exp" not in payload:
            raise Unauthorized("Invalid or expired token")
        return CallerIdentity(user_id=user_id)
