"""
FastAPI application for the blog backend.

``create_app`` wires the record stores, hasher, token issuer and
services onto ``app.state``; the module-level ``app`` is built from
environment settings so it can be served directly::

    uvicorn blog_api.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from blog_api import db
from blog_api.auth_utils import PasswordHasher, TokenIssuer, get_current_user
from blog_api.config import Settings, get_settings
from blog_api.dependencies import get_credential_service, get_post_service
from blog_api.errors import ServiceError
from blog_api.logging_config import setup_logging
from blog_api.schemas import (
    PUBLIC_USER_FIELDS,
    ErrorResponse,
    Post,
    PostCreate,
    PostUpdate,
    PublicUser,
    SignInRequest,
    SignUpRequest,
    TokenResponse,
    public_user,
)
from blog_api.services import CredentialService, PostService, UserService
from blog_api.store import RecordStore, create_memory_stores

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "Health", "description": "Service health checks."},
    {"name": "Auth", "description": "Signup/signin and current user."},
    {"name": "Posts", "description": "Posts; mutation is limited to the author."},
]

ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    code: {"model": ErrorResponse} for code in (401, 403, 404, 409, 422)
}

router = APIRouter()


# =========================
# Health
# =========================

@router.get("/", tags=["Health"], summary="Service info")
def index(request: Request) -> Dict[str, Any]:
    """Describe the service and its endpoints."""
    settings: Settings = request.app.state.settings
    return {
        "message": settings.project_name,
        "version": settings.api_version,
        "status": "Running",
        "endpoints": {
            "auth": {
                "signup": "POST /auth/signup",
                "signin": "POST /auth/signin",
                "me": "GET /auth/me",
            },
            "posts": {
                "create": "POST /posts",
                "getAll": "GET /posts",
                "getMyPosts": "GET /posts/my-posts",
                "getById": "GET /posts/:id",
                "update": "PATCH /posts/:id",
                "delete": "DELETE /posts/:id",
            },
        },
        "note": "Creating, updating and deleting posts requires a bearer token",
    }


@router.get("/health", tags=["Health"], summary="Health check")
def health_check() -> Dict[str, str]:
    """Health check endpoint."""
    return {"message": "Healthy"}


# =========================
# Auth
# =========================

@router.post(
    "/auth/signup",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    tags=["Auth"],
    summary="Sign up",
)
def signup(payload: SignUpRequest, service: CredentialService = Depends(get_credential_service)) -> Dict[str, Any]:
    """Create a new user and return an access token."""
    return service.sign_up(payload.username, payload.email, payload.password)


@router.post("/auth/signin", response_model=TokenResponse, responses=ERROR_RESPONSES, tags=["Auth"], summary="Sign in")
def signin(payload: SignInRequest, service: CredentialService = Depends(get_credential_service)) -> Dict[str, Any]:
    """Authenticate a user and return an access token."""
    return service.sign_in(payload.username, payload.password)


@router.get("/auth/me", response_model=PublicUser, responses=ERROR_RESPONSES, tags=["Auth"], summary="Current user")
def me(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """Return the current authenticated user."""
    return public_user(user)


# =========================
# Posts
# =========================

@router.post(
    "/posts",
    response_model=Post,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    tags=["Posts"],
    summary="Create post",
)
def create_post(
    payload: PostCreate,
    user: Dict[str, Any] = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
) -> Dict[str, Any]:
    """Create a post authored by the current user."""
    return service.create(payload, user["id"])


@router.get("/posts", response_model=List[Post], tags=["Posts"], summary="List posts")
def list_posts(service: PostService = Depends(get_post_service)) -> List[Dict[str, Any]]:
    """List all posts, newest first."""
    return service.find_all()


# Declared before /posts/{post_id} so "my-posts" is not parsed as an id.
@router.get("/posts/my-posts", response_model=List[Post], responses=ERROR_RESPONSES, tags=["Posts"], summary="My posts")
def my_posts(
    user: Dict[str, Any] = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
) -> List[Dict[str, Any]]:
    """List the current user's posts, newest first."""
    return service.find_by_author(user["id"])


@router.get("/posts/{post_id}", response_model=Post, responses=ERROR_RESPONSES, tags=["Posts"], summary="Get post")
def get_post(post_id: int, service: PostService = Depends(get_post_service)) -> Dict[str, Any]:
    """Get a post by id."""
    return service.find_one(post_id)


@router.patch("/posts/{post_id}", response_model=Post, responses=ERROR_RESPONSES, tags=["Posts"], summary="Update post")
def update_post(
    post_id: int,
    payload: PostUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
) -> Dict[str, Any]:
    """Update a post owned by the current user. Only supplied fields change."""
    return service.update(post_id, payload, user["id"])


@router.delete(
    "/posts/{post_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=ERROR_RESPONSES,
    tags=["Posts"],
    summary="Delete post",
)
def delete_post(
    post_id: int,
    user: Dict[str, Any] = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
) -> Response:
    """Delete a post owned by the current user."""
    service.remove(post_id, user["id"])
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =========================
# Error handlers
# =========================

async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Service error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # ctx may hold exception instances which are not JSON serializable.
    errors = [{"type": e.get("type"), "loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()]
    return JSONResponse(
        status_code=422,
        content={"error_code": "VALIDATION_FAILED", "message": "Validation failed", "details": {"errors": errors}},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error_code": "INTERNAL_ERROR", "message": "Internal server error"},
    )


# PUBLIC_INTERFACE
def create_app(
    settings: Optional[Settings] = None,
    users_store: Optional[RecordStore] = None,
    posts_store: Optional[RecordStore] = None,
) -> FastAPI:
    """Build a configured FastAPI application.

    Stores default to the backend named by ``settings.storage_backend``;
    pass both ``users_store`` and ``posts_store`` to supply your own.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    use_postgres = False
    if users_store is None or posts_store is None:
        if settings.storage_backend == "postgres":
            users_store, posts_store = db.create_postgres_stores(PUBLIC_USER_FIELDS)
            use_postgres = True
        elif settings.storage_backend == "memory":
            users_store, posts_store = create_memory_stores(PUBLIC_USER_FIELDS)
        else:
            raise ValueError(f"Unknown storage backend '{settings.storage_backend}'")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if use_postgres:
            db.init_db_pool()
            db.init_schema()
        logger.info("%s %s started (storage=%s)", settings.project_name, settings.api_version, settings.storage_backend)
        yield
        if use_postgres:
            db.close_db_pool()

    app = FastAPI(
        title=settings.project_name,
        description=(
            "Blogging backend: signup/signin with bearer tokens and posts that only "
            "their author may change.\n\n"
            "Auth: Use the `Authorization: Bearer <token>` header for protected routes."
        ),
        version=settings.api_version,
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    user_service = UserService(users_store)
    token_issuer = TokenIssuer(settings.jwt_secret, settings.jwt_algorithm, settings.jwt_expires_minutes)
    app.state.settings = settings
    app.state.token_issuer = token_issuer
    app.state.user_service = user_service
    app.state.credential_service = CredentialService(
        user_service, PasswordHasher(settings.bcrypt_rounds), token_issuer
    )
    app.state.post_service = PostService(posts_store)

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(router)
    return app


app = create_app()
