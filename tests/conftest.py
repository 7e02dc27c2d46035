"""
Pytest fixtures for the blog API tests.

Everything runs against the in-memory record store with bcrypt at its
minimum cost so the suite stays fast.
"""

import os

# The module-level app in blog_api.main is built from the environment at import.
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient

from blog_api.auth_utils import PasswordHasher, TokenIssuer
from blog_api.config import Settings
from blog_api.main import create_app
from blog_api.schemas import PUBLIC_USER_FIELDS
from blog_api.services import CredentialService, PostService, UserService
from blog_api.store import create_memory_stores

TEST_SECRET = "test-secret"


@pytest.fixture
def settings():
    """Settings for an isolated in-memory app."""
    return Settings(
        project_name="Blog API (test)",
        api_version="0.0.1-test",
        log_level="WARNING",
        jwt_secret=TEST_SECRET,
        jwt_algorithm="HS256",
        jwt_expires_minutes=5,
        bcrypt_rounds=4,
        storage_backend="memory",
        cors_allow_origins="*",
    )


@pytest.fixture
def stores():
    """Fresh (users, posts) in-memory stores."""
    return create_memory_stores(PUBLIC_USER_FIELDS)


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def issuer():
    return TokenIssuer(TEST_SECRET, "HS256", 5)


@pytest.fixture
def user_service(stores):
    return UserService(stores[0])


@pytest.fixture
def credential_service(user_service, hasher, issuer):
    return CredentialService(user_service, hasher, issuer)


@pytest.fixture
def post_service(stores):
    return PostService(stores[1])


@pytest.fixture
def client(settings, stores):
    """
    TestClient over an app wired to the fixture stores.

    Example:
        def test_health(client):
            assert client.get("/health").status_code == 200
    """
    app = create_app(settings, users_store=stores[0], posts_store=stores[1])
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def signup(client):
    """Sign a user up through the API and return (user, auth headers)."""

    def _signup(username: str, email: str, password: str = "secret1"):
        response = client.post(
            "/auth/signup",
            json={"username": username, "email": email, "password": password},
        )
        assert response.status_code == 201, response.text
        body = response.json()
        return body["user"], {"Authorization": f"Bearer {body['access_token']}"}

    return _signup
