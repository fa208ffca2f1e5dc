"""Unit tests for auth/tokens.py -- password hashing and the token signer.

Covers:
- bcrypt hash/verify round trip, wrong password, malformed hash
- sign() payload carries exactly the id and exp claims
- verify() rejects expired, foreign-secret, malformed and claim-less tokens
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.models import CallerIdentity
from auth.tokens import TokenSigner, hash_password, verify_password
from core.errors import Unauthorized

_SECRET = "s" * 48
_OTHER_SECRET = "o" * 48


class TestPasswordHashing:
    def test_hash_is_not_plaintext_and_verifies(self) -> None:
        hashed = hash_password("pw1", rounds=4)
        assert hashed != "pw1"
        assert hashed.startswith("$2")
        assert verify_password("pw1", hashed)

    def test_wrong_password_fails(self) -> None:
        hashed = hash_password("pw1", rounds=4)
        assert not verify_password("pw2", hashed)

    def test_same_password_hashes_differently(self) -> None:
        """Each hash carries its own salt."""
        assert hash_password("pw1", rounds=4) != hash_password("pw1", rounds=4)

    def test_malformed_hash_is_a_mismatch(self) -> None:
        assert not verify_password("pw1", "not-a-bcrypt-hash")


class TestTokenSigner:
    def test_sign_then_verify_returns_caller(self) -> None:
        signer = TokenSigner(_SECRET, 3600)
        token = signer.sign("abc123")
        assert signer.verify(token) == CallerIdentity(user_id="abc123")

    def test_payload_has_only_id_and_exp(self) -> None:
        signer = TokenSigner(_SECRET, 3600)
        payload = jwt.decode(signer.sign("abc123"), _SECRET, algorithms=["HS256"])
        assert set(payload) == {"id", "exp"}

    def test_expiry_matches_configured_lifetime(self) -> None:
        thirty_days = 30 * 24 * 3600
        signer = TokenSigner(_SECRET, thirty_days)
        payload = jwt.decode(signer.sign("abc123"), _SECRET, algorithms=["HS256"])
        expected = datetime.now(timezone.utc) + timedelta(seconds=thirty_days)
        assert abs(payload["exp"] - expected.timestamp()) < 60

    def test_expired_token_rejected(self) -> None:
        signer = TokenSigner(_SECRET, -60)
        token = signer.sign("abc123")
        with pytest.raises(Unauthorized):
            signer.verify(token)

    def test_token_from_other_secret_rejected(self) -> None:
        token = TokenSigner(_OTHER_SECRET, 3600).sign("abc123")
        with pytest.raises(Unauthorized):
            TokenSigner(_SECRET, 3600).verify(token)

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
    def test_malformed_token_rejected(self, token: str) -> None:
        with pytest.raises(Unauthorized):
            TokenSigner(_SECRET, 3600).verify(token)

    def test_token_without_id_claim_rejected(self) -> None:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
        token = jwt.encode({"sub": "abc123", "exp": exp}, _SECRET, algorithm="HS256")
        with pytest.raises(Unauthorized):
            TokenSigner(_SECRET, 3600).verify(token)

    def test_token_without_exp_rejected(self) -> None:
        token = jwt.encode({"id": "abc123"}, _SECRET, algorithm="HS256")
        with pytest.raises(Unauthorized):
            TokenSigner(_SECRET, 3600).verify(token)
