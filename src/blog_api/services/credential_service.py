"""
Signup and signin.

Passwords are stored only as bcrypt hashes and both flows answer with a
signed access token plus the public projection of the user.  Signin
failures never reveal whether the username exists.
"""

import logging
from typing import Any, Dict

from blog_api.auth_utils import PasswordHasher, TokenIssuer, user_claims
from blog_api.errors import DuplicateIdentity, InvalidCredentials
from blog_api.schemas import SignInRequest, SignUpRequest, validate_payload
from blog_api.services.user_service import UserService

logger = logging.getLogger(__name__)


class CredentialService:
    def __init__(self, users: UserService, hasher: PasswordHasher, issuer: TokenIssuer) -> None:
        self.users = users
        self.hasher = hasher
        self.issuer = issuer

    def _token_response(self, user: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "access_token": self.issuer.sign(user_claims(user)),
            "token_type": "bearer",
            "user": self.users.to_public(user),
        }

    # PUBLIC_INTERFACE
    def sign_up(self, username: str, email: str, password: str) -> Dict[str, Any]:
        """Register a new user and return an access token for it.

        Raises:
            ValidationFailed: input breaks the length or email rules.
            DuplicateIdentity: username or email is already taken.
        """
        payload = validate_payload(SignUpRequest, {"username": username, "email": email, "password": password})

        if self.users.find_by_username(payload.username) is not None:
            raise DuplicateIdentity("Username already registered")
        if self.users.find_by_email(payload.email) is not None:
            raise DuplicateIdentity("Email already registered")

        user = self.users.create(payload.username, payload.email, self.hasher.hash(payload.password))
        logger.info("Registered user %s (id=%s)", user["username"], user["id"])
        return self._token_response(user)

    # PUBLIC_INTERFACE
    def sign_in(self, username: str, password: str) -> Dict[str, Any]:
        """Authenticate a user and return an access token.

        Raises:
            ValidationFailed: username or password is empty.
            InvalidCredentials: unknown username or wrong password.
        """
        payload = validate_payload(SignInRequest, {"username": username, "password": password})

        user = self.users.find_by_username(payload.username)
        if user is None:
            # Keeps unknown usernames as slow as wrong passwords.
            self.hasher.dummy_verify()
        if user is None or not self.hasher.verify(payload.password, user.get("password")):
            logger.info("Rejected signin for username %s", payload.username)
            raise InvalidCredentials()

        return self._token_response(user)
