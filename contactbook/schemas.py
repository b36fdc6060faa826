from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class RegisterRequest(BaseModel):
    """Registration payload. Field rules live in ``validation``."""

    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    password_confirmation: Optional[str] = None


class LoginRequest(BaseModel):
    """Login payload."""

    email: Optional[str] = None
    password: Optional[str] = None


class UserOut(BaseModel):
    """Response schema for user data."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    created_at: Optional[datetime] = None


class AuthResult(BaseModel):
    """User plus a freshly issued bearer token."""

    user: UserOut
    token: str
    token_type: str = "bearer"


class CurrentUser(BaseModel):
    user: UserOut


class Message(BaseModel):
    message: str


class ContactOut(BaseModel):
    """Schema for returning a contact."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    phone: str
    email: Optional[str] = None
    image_path: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ContactEnvelope(BaseModel):
    data: ContactOut


class Pagination(BaseModel):
    """Pagination block of a contact listing."""

    total: int
    per_page: int
    current_page: int
    last_page: int


class ContactPage(BaseModel):
    """A page of contacts together with its pagination data."""

    data: List[ContactOut]
    pagination: Pagination

    @classmethod
    def from_page(cls, page) -> "ContactPage":
        return cls(
            data=[ContactOut.model_validate(c) for c in page.items],
            pagination=Pagination(
                total=page.total,
                per_page=page.per_page,
                current_page=page.current_page,
                last_page=page.last_page,
            ),
        )
