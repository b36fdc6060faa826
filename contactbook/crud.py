"""CRUD operations for users, access tokens and contacts.

This module contains database interaction logic, isolated from FastAPI
route handlers. Every contact query goes through ``owned_by`` so a
contact is only ever visible to the user that owns it.
"""

from datetime import datetime, timezone

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .errors import DuplicateEmail, DuplicatePhone


def create_user(
    db: Session, name: str, email: str, password_hash: str
) -> models.User:
    """
    Create and persist a new user.

    Args:
        db (Session): SQLAlchemy database session.
        name (str): Display name.
        email (str): Login email, unique across users.
        password_hash (str): Securely hashed password.

    Raises:
        DuplicateEmail: If a user with the same email already exists.

    Returns:
        User: Newly created user instance.
    """
    if get_user_by_email(db, email) is not None:
        raise DuplicateEmail()

    user = models.User(name=name, email=email, password_hash=password_hash)
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateEmail() from e
    db.refresh(user)
    return user


def get_user_by_email(db: Session, email: str) -> models.User | None:
    """
    Retrieve a user by email address.

    Args:
        db (Session): Database session.
        email (str): User email.

    Returns:
        User | None: User if found, otherwise ``None``.
    """
    return db.execute(
        select(models.User).where(models.User.email == email)
    ).scalar_one_or_none()


def get_user_by_id(db: Session, user_id: int) -> models.User | None:
    return db.get(models.User, user_id)


def create_token(
    db: Session, user: models.User, token_hash: str, name: str = "api_token"
) -> models.AccessToken:
    """Persist a new access token record for ``user``."""
    token = models.AccessToken(user_id=user.id, name=name, token_hash=token_hash)
    db.add(token)
    db.commit()
    db.refresh(token)
    return token


def get_token(db: Session, token_id: int) -> models.AccessToken | None:
    return db.get(models.AccessToken, token_id)


def touch_token(db: Session, token: models.AccessToken) -> None:
    """Record that ``token`` was just used."""
    token.last_used_at = datetime.now(timezone.utc).replace(tzinfo=None)
    db.commit()


def delete_user_tokens(db: Session, user_id: int) -> int:
    """
    Delete every token issued to a user.

    Returns:
        int: Number of tokens removed.
    """
    result = db.execute(
        delete(models.AccessToken).where(models.AccessToken.user_id == user_id)
    )
    db.commit()
    return result.rowcount or 0


def owned_by(owner_id: int):
    """Authorization predicate shared by every contact query."""
    return models.Contact.user_id == owner_id


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contacts_query(owner_id: int, q: str | None = None):
    """
    Build the ordered select for a user's contacts.

    With ``q`` the result is narrowed to contacts whose name or email
    contains it case-insensitively, or whose phone contains it.
    """
    stmt = select(models.Contact).where(owned_by(owner_id))
    if q:
        like_q = f"%{_escape_like(q)}%"
        stmt = stmt.where(
            or_(
                models.Contact.name.ilike(like_q, escape="\\"),
                models.Contact.phone.like(like_q, escape="\\"),
                models.Contact.email.ilike(like_q, escape="\\"),
            )
        )
    return stmt.order_by(models.Contact.name.asc(), models.Contact.id.asc())


def paginate(db: Session, stmt, page: int, per_page: int):
    """
    Run ``stmt`` for a single page.

    Returns:
        tuple[list, int]: Items of the page and the total row count.
    """
    total = db.scalar(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    )
    total = total or 0
    offset = (page - 1) * per_page
    if offset >= total:
        return [], total
    items = db.scalars(stmt.offset(offset).limit(per_page)).all()
    return list(items), total


def get_contact(db: Session, owner_id: int, contact_id: int) -> models.Contact | None:
    """
    Retrieve a single contact owned by the given user.

    Args:
        db (Session): Database session.
        owner_id (int): Identifier of the calling user.
        contact_id (int): Contact identifier.

    Returns:
        Contact | None: Contact if it exists and is owned by ``owner_id``.
    """
    return db.execute(
        select(models.Contact).where(
            models.Contact.id == contact_id,
            owned_by(owner_id),
        )
    ).scalar_one_or_none()


def find_contact_by(
    db: Session,
    owner_id: int,
    field: str,
    value: str,
    exclude_id: int | None = None,
) -> models.Contact | None:
    """Find one of the user's contacts whose ``field`` equals ``value``."""
    column = getattr(models.Contact, field)
    stmt = select(models.Contact).where(owned_by(owner_id), column == value)
    if exclude_id is not None:
        stmt = stmt.where(models.Contact.id != exclude_id)
    return db.execute(stmt.limit(1)).scalar_one_or_none()


def insert_contact(db: Session, owner_id: int, fields: dict) -> models.Contact:
    """
    Create a new contact owned by the given user.

    Raises:
        DuplicatePhone: If the unique (owner, phone) index rejects the row.
    """
    contact = models.Contact(**fields, user_id=owner_id)
    db.add(contact)
    _commit_contact(db)
    db.refresh(contact)
    return contact


def update_contact(db: Session, contact: models.Contact, changes: dict):
    """
    Update mutable fields of a contact.

    Args:
        db (Session): Database session.
        contact (Contact): Contact instance.
        changes (dict): Fields to update.

    Returns:
        Contact: Updated contact.
    """
    for key, value in changes.items():
        setattr(contact, key, value)

    db.add(contact)
    _commit_contact(db)
    db.refresh(contact)
    return contact


def delete_contact(db: Session, contact: models.Contact):
    """
    Delete a contact from the database.

    Args:
        db (Session): Database session.
        contact (Contact): Contact to delete.
    """
    db.delete(contact)
    db.commit()
    return None


def _commit_contact(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicatePhone() from e
