"""
Business services.

- ``UserService``: user records and lookups
- ``CredentialService``: signup and signin
- ``PostService``: post CRUD with author-only mutation
"""

from blog_api.services.credential_service import CredentialService
from blog_api.services.post_service import PostService
from blog_api.services.user_service import UserService

__all__ = ["CredentialService", "PostService", "UserService"]
