"""
FastAPI dependencies that hand route handlers the services wired onto
``app.state`` by ``create_app``.
"""

from fastapi import Request

from blog_api.services import CredentialService, PostService


# PUBLIC_INTERFACE
def get_credential_service(request: Request) -> CredentialService:
    """Return the application's credential service."""
    return request.app.state.credential_service


# PUBLIC_INTERFACE
def get_post_service(request: Request) -> PostService:
    """Return the application's post service."""
    return request.app.state.post_service
