"""Contact directory service.

Owner-scoped operations on contacts. Every function takes the calling
user's id explicitly; a contact owned by someone else is reported as
``NotFound``, exactly like one that does not exist.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.orm import Session

from . import crud, models
from .core import get_settings
from .errors import DuplicatePhone, NotFound

logger = structlog.get_logger(__name__)

MUTABLE_FIELDS = ("name", "phone", "email", "image_path")


@dataclass
class Page:
    """One page of contacts plus the numbers needed to walk the rest."""

    items: List[models.Contact]
    total: int
    per_page: int
    current_page: int

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))


def page_size(per_page: Optional[int]) -> int:
    """Apply the default and the upper bound to a requested page size."""
    settings = get_settings()
    if per_page is None or per_page <= 0:
        return settings.DEFAULT_PER_PAGE
    return min(per_page, settings.MAX_PER_PAGE)


def _page(db: Session, stmt, page: Optional[int], per_page: Optional[int]) -> Page:
    size = page_size(per_page)
    current = page if page and page > 0 else 1
    items, total = crud.paginate(db, stmt, current, size)
    return Page(items=items, total=total, per_page=size, current_page=current)


def list_contacts(
    db: Session, owner_id: int, page: Optional[int] = 1, per_page: Optional[int] = None
) -> Page:
    """
    Return one page of the caller's contacts, ordered by name.

    Args:
        db (Session): Database session.
        owner_id (int): Calling user.
        page (int | None): 1-based page number; values below 1 mean 1.
        per_page (int | None): Page size; defaulted and clamped.

    Returns:
        Page: Contacts on the page with pagination totals.
    """
    return _page(db, crud.contacts_query(owner_id), page, per_page)


def search_contacts(
    db: Session,
    owner_id: int,
    q: Optional[str],
    page: Optional[int] = 1,
    per_page: Optional[int] = None,
) -> Page:
    """
    Search the caller's contacts by name, phone or email.

    An empty (or blank) query behaves exactly like ``list_contacts``.
    """
    q = (q or "").strip()
    if not q:
        return list_contacts(db, owner_id, page, per_page)
    return _page(db, crud.contacts_query(owner_id, q), page, per_page)


def get_contact(db: Session, owner_id: int, contact_id: int) -> models.Contact:
    """
    Fetch a contact owned by the caller.

    Raises:
        NotFound: If the contact does not exist or belongs to another user.
    """
    contact = crud.get_contact(db, owner_id, contact_id)
    if contact is None:
        raise NotFound("Contact not found")
    return contact


def phone_in_use(
    db: Session, owner_id: int, phone: str, exclude_id: Optional[int] = None
) -> bool:
    return crud.find_contact_by(db, owner_id, "phone", phone, exclude_id) is not None


def email_in_use(
    db: Session, owner_id: int, email: Optional[str], exclude_id: Optional[int] = None
) -> bool:
    if not email:
        return False
    return crud.find_contact_by(db, owner_id, "email", email, exclude_id) is not None


def create_contact(
    db: Session,
    owner_id: int,
    name: str,
    phone: str,
    email: Optional[str] = None,
    image_path: Optional[str] = None,
) -> models.Contact:
    """
    Create a contact owned by the caller.

    Raises:
        DuplicatePhone: If the caller already has a contact with ``phone``.
    """
    if phone_in_use(db, owner_id, phone):
        raise DuplicatePhone()
    contact = crud.insert_contact(
        db,
        owner_id,
        {"name": name, "phone": phone, "email": email, "image_path": image_path},
    )
    logger.info("Contact created", contact_id=contact.id, user_id=owner_id)
    return contact


def update_contact(
    db: Session, owner_id: int, contact_id: int, fields: Dict[str, Any]
) -> models.Contact:
    """
    Change mutable fields of one of the caller's contacts.

    Keys other than name, phone, email and image_path are ignored, so the
    owner can never be reassigned.

    Raises:
        NotFound: If the contact is missing or not owned by the caller.
        DuplicatePhone: If another of the caller's contacts has the new phone.
    """
    contact = get_contact(db, owner_id, contact_id)
    changes = {k: v for k, v in fields.items() if k in MUTABLE_FIELDS}
    if "phone" in changes and phone_in_use(
        db, owner_id, changes["phone"], exclude_id=contact.id
    ):
        raise DuplicatePhone()
    contact = crud.update_contact(db, contact, changes)
    logger.info(
        "Contact updated",
        contact_id=contact.id,
        user_id=owner_id,
        fields=sorted(changes),
    )
    return contact


def delete_contact(db: Session, owner_id: int, contact_id: int) -> Optional[str]:
    """
    Delete one of the caller's contacts.

    The attached image, if any, is left for the caller to remove.

    Raises:
        NotFound: If the contact is missing or not owned by the caller.

    Returns:
        str | None: The deleted contact's ``image_path``.
    """
    contact = get_contact(db, owner_id, contact_id)
    image_path = contact.image_path
    crud.delete_contact(db, contact)
    logger.info("Contact deleted", contact_id=contact_id, user_id=owner_id)
    return image_path
