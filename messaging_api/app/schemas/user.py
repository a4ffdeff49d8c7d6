"""
Pydantic models for user data.

Defines schemas for registering users and reading them back.  The
request schema keeps every field optional so that missing values reach
``UserService.create_user``, which owns validation and reports it as a
``ValidationError``.
"""

from typing import Optional

from pydantic import BaseModel, Field


class UserCreate(BaseModel):
    """Schema for registering a user."""

    email: Optional[str] = Field(None, examples=["user@example.com"])
    name: Optional[str] = Field(None, examples=["Jane Doe"])


class UserSummary(BaseModel):
    """Identity of a user as embedded in message views."""

    id: str
    name: str
    email: str


class UserRead(BaseModel):
    """Schema for reading a user from the API."""

    id: str
    email: str
    name: str
    created_at: str

    model_config = {
        "from_attributes": True,
    }
