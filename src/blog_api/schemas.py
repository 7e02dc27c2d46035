from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError

from blog_api.errors import ValidationFailed

ModelT = TypeVar("ModelT", bound=BaseModel)


class ErrorResponse(BaseModel):
    error_code: str = Field(..., description="Machine readable error code")
    message: str = Field(..., description="Human readable message")
    details: Optional[Dict[str, Any]] = None


class PublicUser(BaseModel):
    id: int
    username: str
    email: str
    created_at: Optional[datetime] = None


# Fields of a user record that may leave the service layer.
PUBLIC_USER_FIELDS = tuple(PublicUser.model_fields)


class SignUpRequest(BaseModel):
    username: str = Field(..., min_length=4, description="Username (min 4 chars)")
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=6, description="Password (min 6 chars)")


class SignInRequest(BaseModel):
    username: str = Field(..., min_length=1, description="Username")
    password: str = Field(..., min_length=1, description="Password")


class TokenResponse(BaseModel):
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field("bearer", description="Token type (bearer)")
    user: PublicUser


class PostCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1, description="Post title")
    content: str = Field(..., min_length=1, description="Post body")


class PostUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=1)
    content: Optional[str] = Field(None, min_length=1)


class Post(BaseModel):
    id: int
    title: str
    content: str
    author_id: int
    author: Optional[PublicUser] = None
    created_at: datetime
    updated_at: datetime


def _sanitize(errors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # ctx may hold exception instances which are not JSON serializable.
    return [
        {
            "type": e.get("type"),
            "loc": list(e.get("loc", ())),
            "msg": e.get("msg"),
        }
        for e in errors
    ]


# PUBLIC_INTERFACE
def validate_payload(model: Type[ModelT], data: Any) -> ModelT:
    """Validate ``data`` against ``model`` or raise ``ValidationFailed``."""
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ValidationFailed(_sanitize(exc.errors())) from exc


# PUBLIC_INTERFACE
def public_user(record: Mapping[str, Any]) -> Dict[str, Any]:
    """Project a user record onto its public fields."""
    return {f: record.get(f) for f in PUBLIC_USER_FIELDS}
