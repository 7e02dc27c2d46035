"""Tests for password hashing and token signing."""

import pytest
from jose import jwt

from blog_api.auth_utils import PasswordHasher, TokenIssuer, user_claims
from blog_api.errors import InvalidToken


class TestPasswordHasher:
    def test_hash_is_not_plaintext_and_verifies(self, hasher):
        hashed = hasher.hash("secret1")

        assert hashed != "secret1"
        assert hashed.startswith("$2")
        assert hasher.verify("secret1", hashed)
        assert not hasher.verify("secret2", hashed)

    def test_hash_is_salted(self, hasher):
        assert hasher.hash("secret1") != hasher.hash("secret1")

    def test_default_cost_factor_is_ten(self):
        hashed = PasswordHasher().hash("secret1")

        assert hashed.split("$")[2] == "10"

    @pytest.mark.parametrize("stored", [None, "", "not-a-hash"])
    def test_unusable_hash_never_verifies(self, hasher, stored):
        assert hasher.verify("secret1", stored) is False


class TestTokenIssuer:
    def test_sign_and_verify_round_trip(self, issuer):
        token = issuer.sign({"sub": "1", "username": "alice", "email": "a@example.com"})

        claims = issuer.verify(token)
        assert claims["sub"] == "1"
        assert claims["username"] == "alice"
        assert "exp" in claims and "iat" in claims

    def test_token_from_other_secret_is_rejected(self, issuer):
        token = TokenIssuer("another-secret").sign({"sub": "1"})

        with pytest.raises(InvalidToken):
            issuer.verify(token)

    def test_expired_token_is_rejected(self):
        expired = TokenIssuer("s3cret", expires_minutes=-1)
        token = expired.sign({"sub": "1"})

        with pytest.raises(InvalidToken):
            expired.verify(token)

    def test_token_without_subject_is_rejected(self, issuer):
        token = jwt.encode({"username": "alice"}, "test-secret", algorithm="HS256")

        with pytest.raises(InvalidToken):
            issuer.verify(token)

    def test_missing_secret_raises_runtime_error(self):
        with pytest.raises(RuntimeError):
            TokenIssuer(None).sign({"sub": "1"})


def test_user_claims_excludes_password():
    claims = user_claims({"id": 7, "username": "alice", "email": "a@example.com", "password": "hash"})

    assert claims == {"sub": "7", "username": "alice", "email": "a@example.com"}


def test_dummy_verify_never_succeeds(hasher):
    assert hasher.dummy_verify() is False
