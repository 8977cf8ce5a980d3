from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class UserCreate(BaseModel):
    """Schema used for incoming create requests.

    Both fields are optional here so the handler can answer a missing email
    with its own 400 instead of a generic validation error.
    """

    email: Optional[str] = None
    name: Optional[str] = None


class UserCreateMany(BaseModel):
    """Validates the entries once the handler has checked `users` is a non-empty array."""

    users: List[UserCreate]


class UserDelete(BaseModel):
    id: Optional[int] = None


class UserOut(BaseModel):
    """Schema used for responses. Keys are camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: int
    email: str
    name: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class UserResponse(BaseModel):
    success: bool = True
    message: str
    user: UserOut


class CountResponse(BaseModel):
    success: bool = True
    message: str
    count: int


class UserListResponse(BaseModel):
    success: bool = True
    users: List[UserOut] = []


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Error description.")


def format_errors(exc) -> str:
    """Flatten a pydantic / FastAPI validation error into one message."""
    parts = []
    for error in exc.errors():
        # Drop the leading "body" segment FastAPI puts on every body error.
        loc = [str(p) for p in error["loc"] if p != "body"]
        parts.append(f"{'.'.join(loc)}: {error['msg']}" if loc else error["msg"])
    return "; ".join(parts) or "Invalid request body"
