"""
API models and schemas for the Book Directory application.

Request bodies and responses use camelCase field names (``fullName``,
``createdBy``...). MongoDB documents keep snake_case keys; the
``from_document`` constructors translate between the two.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


class APIModel(BaseModel):
    """Base model accepting either field names or their camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True)


# Requests

class UserRegisterRequest(APIModel):
    """Body of POST /users/register."""
    full_name: str = Field(..., alias="fullName", min_length=1, description="User's full name")
    email: str = Field(..., min_length=1, description="Login email")
    password: str = Field(..., min_length=1, description="Plaintext password, hashed before storage")

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v):
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v


class UserLoginRequest(APIModel):
    """Body of POST /users/login."""
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class BookRequest(APIModel):
    """
    Body of POST /books and PUT /books/{id}.

    Every field is mandatory on write, so an update always replaces all four.
    """
    title: str = Field(..., min_length=1, description="Book title")
    author: str = Field(..., min_length=1, description="Book author")
    isbn: str = Field(..., min_length=1, description="ISBN")
    desc: str = Field(..., min_length=1, description="Short description")


# Responses

class BookResponse(APIModel):
    """A book record; also the shape of the snapshots embedded in a user."""
    id: str = Field(..., description="Unique book identifier")
    title: str
    author: str
    isbn: str
    desc: str
    created_by: str = Field(..., alias="createdBy", description="Owning user id")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "BookResponse":
        return cls(
            id=str(doc.get("_id", doc.get("id"))),
            title=doc["title"],
            author=doc["author"],
            isbn=doc["isbn"],
            desc=doc["desc"],
            created_by=str(doc["created_by"]),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )


class UserPublic(APIModel):
    """User fields that are safe to embed in other resources."""
    id: str
    full_name: str = Field(..., alias="fullName")
    email: str
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "UserPublic":
        return cls(
            id=str(doc["_id"]),
            full_name=doc["full_name"],
            email=doc["email"],
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )


class UserResponse(UserPublic):
    """A user record without its password digest."""
    books: List[BookResponse] = Field(default_factory=list)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "UserResponse":
        public = UserPublic.from_document(doc)
        return cls(
            **public.model_dump(),
            books=[BookResponse.from_document(b) for b in doc.get("books", [])],
        )


class BookWithOwnerResponse(BookResponse):
    """A book whose ``createdBy`` is the owning user instead of an id."""
    created_by: Optional[UserPublic] = Field(None, alias="createdBy")

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "BookWithOwnerResponse":
        owner = doc.get("owner")
        return cls(
            id=str(doc["_id"]),
            title=doc["title"],
            author=doc["author"],
            isbn=doc["isbn"],
            desc=doc["desc"],
            created_by=UserPublic.from_document(owner) if owner else None,
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )


class RegisterResponse(APIModel):
    message: str = "User registered"
    user: UserResponse


class LoginResponse(APIModel):
    message: str = "Login success"
    user: UserResponse


class BookCreatedResponse(APIModel):
    message: str = "Book created"
    book: BookResponse


class MessageResponse(APIModel):
    message: str


class ErrorResponse(BaseModel):
    """Error response model."""
    message: str = Field(..., description="Error message")
    detail: Optional[Any] = Field(None, description="Additional error details")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
