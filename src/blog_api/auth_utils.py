import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from blog_api.errors import InvalidToken, NotFound

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


class PasswordHasher:
    """Salted bcrypt hashing through passlib."""

    def __init__(self, rounds: int = 10) -> None:
        self.rounds = rounds
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    # PUBLIC_INTERFACE
    def hash(self, password: str) -> str:
        """Hash a plaintext password."""
        return self._context.hash(password)

    # PUBLIC_INTERFACE
    def verify(self, password: str, password_hash: Optional[str]) -> bool:
        """Verify a plaintext password against a stored hash."""
        if not password_hash:
            return False
        try:
            return self._context.verify(password, password_hash)
        except (ValueError, TypeError):
            # Unrecognised or corrupt hash.
            logger.warning("Stored password hash could not be parsed")
            return False

    # PUBLIC_INTERFACE
    def dummy_verify(self) -> bool:
        """Spend the time of a real verify; used when there is no user to check."""
        return self._context.dummy_verify()


class TokenIssuer:
    """Signs and verifies HS256 access tokens with python-jose."""

    def __init__(self, secret: Optional[str], algorithm: str = "HS256", expires_minutes: int = 60) -> None:
        self._secret = secret
        self.algorithm = algorithm
        self.expires_minutes = expires_minutes

    def _key(self) -> str:
        # Required for security; do not default.
        if not self._secret:
            raise RuntimeError(
                "Missing required environment variable 'JWT_SECRET'. "
                "Set it in the environment or in the .env file."
            )
        return self._secret

    # PUBLIC_INTERFACE
    def sign(self, claims: Dict[str, Any]) -> str:
        """Create a JWT carrying ``claims`` plus ``iat``/``exp``."""
        to_encode = dict(claims)
        now = datetime.now(timezone.utc)
        to_encode.update({"iat": now, "exp": now + timedelta(minutes=self.expires_minutes)})
        return jwt.encode(to_encode, self._key(), algorithm=self.algorithm)

    # PUBLIC_INTERFACE
    def verify(self, token: str) -> Dict[str, Any]:
        """Decode a token, raising ``InvalidToken`` if it is bad or expired."""
        try:
            payload = jwt.decode(token, self._key(), algorithms=[self.algorithm])
        except JWTError as exc:
            raise InvalidToken() from exc
        if not payload.get("sub"):
            raise InvalidToken("Invalid token payload")
        return payload


# PUBLIC_INTERFACE
def user_claims(user: Dict[str, Any]) -> Dict[str, Any]:
    """Claims embedded in a user's access token."""
    return {"sub": str(user["id"]), "username": user["username"], "email": user.get("email")}


# PUBLIC_INTERFACE
def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Dict[str, Any]:
    """Dependency that returns the authenticated user's record."""
    if credentials is None:
        raise InvalidToken("Not authenticated")

    payload = request.app.state.token_issuer.verify(credentials.credentials)
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise InvalidToken("Invalid token payload") from None

    try:
        return request.app.state.user_service.find_by_id(user_id)
    except NotFound:
        raise InvalidToken("User no longer exists") from None
