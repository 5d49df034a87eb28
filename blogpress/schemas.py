import math
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, AnyHttpUrl, BaseModel, ConfigDict, EmailStr, Field, field_validator

from blogpress.models import ArticleStatus, UserRole

URL_MAX_LENGTH = 500


def _url_to_str(value: AnyHttpUrl) -> str:
    url = str(value)
    if len(url) > URL_MAX_LENGTH:
        raise ValueError(f"URL must be at most {URL_MAX_LENGTH} characters")
    return url


# http(s) URL stored as a plain string column.
HttpUrlStr = Annotated[AnyHttpUrl, AfterValidator(_url_to_str)]


class RequestModel(BaseModel):
    """Base for request bodies: surrounding whitespace is stripped from strings."""

    model_config = ConfigDict(str_strip_whitespace=True)


# --- Auth ---

class RegisterRequest(RequestModel):
    email: EmailStr
    username: str = Field(min_length=3, max_length=30)
    password: str = Field(min_length=6, max_length=128)
    first_name: str | None = Field(None, max_length=50)
    last_name: str | None = Field(None, max_length=50)
    role: UserRole = UserRole.AUTHOR

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()


class LoginRequest(RequestModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()


class ProfileUpdate(RequestModel):
    first_name: str | None = Field(None, max_length=50)
    last_name: str | None = Field(None, max_length=50)
    bio: str | None = Field(None, max_length=500)
    avatar: HttpUrlStr | None = None


# --- Article ---

class ArticleCreate(RequestModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    excerpt: str | None = Field(None, max_length=500)
    featured_image: HttpUrlStr | None = None
    tags: list[str] = []  # tag names
    status: ArticleStatus = ArticleStatus.DRAFT

    @field_validator("status")
    @classmethod
    def reject_published(cls, value: ArticleStatus) -> ArticleStatus:
        if value == ArticleStatus.PUBLISHED:
            raise ValueError("Articles are published through the publish action")
        return value


class ArticleUpdate(RequestModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    content: str | None = Field(None, min_length=1)
    excerpt: str | None = Field(None, max_length=500)
    featured_image: HttpUrlStr | None = None
    tags: list[str] | None = None
    status: ArticleStatus | None = None

    @field_validator("status")
    @classmethod
    def reject_published(cls, value: ArticleStatus | None) -> ArticleStatus | None:
        if value == ArticleStatus.PUBLISHED:
            raise ValueError("Articles are published through the publish action")
        return value


# --- Comment ---

class CommentCreate(RequestModel):
    content: str = Field(min_length=1, max_length=1000)
    article_id: int
    parent_id: int | None = None


class CommentUpdate(RequestModel):
    content: str = Field(min_length=1, max_length=1000)


# --- Responses ---

class TagResponse(BaseModel):
    id: int
    name: str
    slug: str
    model_config = ConfigDict(from_attributes=True)


class AuthorSummary(BaseModel):
    id: int
    username: str
    first_name: str | None = None
    last_name: str | None = None
    avatar: str | None = None


class TokenResponse(BaseModel):
    user: dict
    token: str
    token_type: str = "bearer"


class LikeStatus(BaseModel):
    like_count: int
    is_liked: bool


class LikeResponse(BaseModel):
    user: AuthorSummary
    created_at: datetime


class LikeList(BaseModel):
    likes: list[LikeResponse]
    count: int


# --- Pagination ---

class PaginatedResponse(BaseModel):
    items: list  # Serialised by the service layer
    total: int
    page: int
    limit: int
    pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, items: list, total: int, page: int, limit: int) -> "PaginatedResponse":
        pages = math.ceil(total / limit) if total > 0 else 0
        return cls(
            items=items,
            total=total,
            page=page,
            limit=limit,
            pages=pages,
            has_next=page < pages,
            has_prev=page > 1,
        )
