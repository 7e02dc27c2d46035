"""Lookups and creation of user records."""

import logging
from typing import Any, Dict, Optional

from blog_api.errors import DuplicateIdentity, NotFound
from blog_api.schemas import public_user
from blog_api.store import RecordStore, UniqueViolation

logger = logging.getLogger(__name__)


class UserService:
    """Thin layer over the users store. Absent lookups return ``None``.

    Emails are stored and matched lowercased.
    """

    def __init__(self, users: RecordStore) -> None:
        self.users = users

    def create(self, username: str, email: str, password_hash: str) -> Dict[str, Any]:
        """Persist a user. ``password_hash`` must already be hashed."""
        try:
            return self.users.create({"username": username, "email": email.lower(), "password": password_hash})
        except UniqueViolation as exc:
            # Lost a race with a concurrent signup for the same identity.
            raise DuplicateIdentity(f"{exc.field.capitalize()} already registered") from exc

    def find_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        return self.users.find_one({"username": username})

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self.users.find_one({"email": email.lower()})

    def find_by_id(self, user_id: int) -> Dict[str, Any]:
        user = self.users.find_one({"id": user_id})
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user

    @staticmethod
    def to_public(user: Dict[str, Any]) -> Dict[str, Any]:
        return public_user(user)
