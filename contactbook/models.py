"""Database models for the Contact Book API.

This module defines SQLAlchemy ORM models used by the application.
"""

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from .core import get_settings
from .database import Base


class User(Base):
    """
    SQLAlchemy model representing an application user.

    A user owns any number of contacts and may hold several live
    access tokens at once (one per device or client).
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    #: Contacts owned by the user
    contacts = relationship(
        "Contact",
        back_populates="owner",
        cascade="all, delete",
        passive_deletes=True,
    )

    #: Bearer tokens issued to the user
    tokens = relationship(
        "AccessToken",
        back_populates="user",
        cascade="all, delete",
        passive_deletes=True,
    )


class AccessToken(Base):
    """
    Persisted bearer token.

    Only a SHA-256 digest of the secret part is stored; the plain value
    is handed to the client once, at issue time.
    """

    __tablename__ = "personal_access_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False, default="api_token")
    token_hash = Column(String(64), unique=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    last_used_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="tokens")


class Contact(Base):
    """
    SQLAlchemy model representing a contact entry.

    Each contact belongs to exactly one user. The phone number is unique
    per owner, enforced by the ``uq_contacts_owner_phone`` index.
    """

    __tablename__ = "contacts"
    __table_args__ = (
        UniqueConstraint("user_id", "phone", name="uq_contacts_owner_phone"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    phone = Column(String(20), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    image_path = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    #: Identifier of the owning user
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    #: Reference to the owning User object
    owner = relationship("User", back_populates="contacts")

    @property
    def image_url(self) -> str | None:
        """Public URL of the attached image, or ``None`` without one."""
        if not self.image_path:
            return None
        settings = get_settings()
        base = settings.BASE_URL.rstrip("/")
        prefix = "/" + settings.MEDIA_URL.strip("/")
        return f"{base}{prefix}/{self.image_path}"
