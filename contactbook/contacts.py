"""Contact management routes for the Contact Book API.

Routes translate requests into directory calls and own the image
lifecycle: a new image is written before the record references it and
an old image is removed only after the record stops referencing it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from . import directory, schemas
from .auth import get_current_user
from .core import get_settings
from .database import get_db
from .errors import StorageFailure, ValidationFailed
from .images import ImageStore, get_image_store
from .models import User
from .validation import ImageUpload, validate_contact, validate_image

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/contacts", tags=["contacts"])

CONTACT_FIELDS = ("name", "phone", "email")


@dataclass
class ContactForm:
    """Raw contact fields and optional image taken from a request body."""

    fields: Dict[str, Any] = field(default_factory=dict)
    image: Optional[ImageUpload] = None


async def read_contact_form(request: Request) -> ContactForm:
    """
    Dependency reading a contact body sent as JSON, urlencoded or multipart.

    Raises:
        ValidationFailed: If a JSON body cannot be decoded into an object.
    """
    form = ContactForm()
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise ValidationFailed({"body": ["invalid"]})
        if not isinstance(body, dict):
            raise ValidationFailed({"body": ["invalid"]})
        form.fields = {k: body[k] for k in CONTACT_FIELDS if k in body}
        return form

    data = await request.form()
    for key, value in data.multi_items():
        if isinstance(value, UploadFile):
            if key == "image" and value.filename:
                form.image = ImageUpload(
                    filename=value.filename,
                    content_type=value.content_type,
                    data=await value.read(get_settings().MAX_IMAGE_BYTES + 1),
                )
        elif key in CONTACT_FIELDS:
            form.fields[key] = value
    return form


def _validated(form: ContactForm, partial: bool = False):
    """Validate fields and image together so all errors are reported at once."""
    errors: Dict[str, list] = {}
    data: Dict[str, Any] = {}
    try:
        data = validate_contact(form.fields, partial=partial)
    except ValidationFailed as e:
        errors.update(e.errors)
    if form.image is not None:
        try:
            validate_image(form.image)
        except ValidationFailed as e:
            errors.update(e.errors)
    if errors:
        raise ValidationFailed(errors)
    return data, form.image


def _ensure_email_free(
    db: Session, owner_id: int, email: Optional[str], exclude_id: Optional[int] = None
) -> None:
    if directory.email_in_use(db, owner_id, email, exclude_id):
        raise ValidationFailed({"email": ["unique"]})


def _envelope(contact) -> schemas.ContactEnvelope:
    return schemas.ContactEnvelope(data=schemas.ContactOut.model_validate(contact))


@router.get("", response_model=schemas.ContactPage)
def list_contacts(
    q: str | None = Query(None),
    page: int = Query(1),
    per_page: int | None = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Retrieve a page of contacts belonging to the current user.

    Supports optional text search by name, phone or email.

    Args:
        q (str | None): Optional search query.
        page (int): 1-based page number.
        per_page (int | None): Page size (default 15, at most 100).
        db (Session): Database session.
        current_user (User): Authenticated user.

    Returns:
        ContactPage: Contacts and pagination data.
    """
    result = directory.search_contacts(db, current_user.id, q, page, per_page)
    return schemas.ContactPage.from_page(result)


@router.post("", response_model=schemas.ContactEnvelope, status_code=201)
def create_contact(
    form: ContactForm = Depends(read_contact_form),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    images: ImageStore = Depends(get_image_store),
):
    """
    Create a new contact owned by the current user.

    An attached image is stored first; if the contact cannot be saved
    the stored image is removed again.
    """
    data, image = _validated(form)
    _ensure_email_free(db, current_user.id, data["email"])

    image_path = images.store(image.data, image.extension) if image else None
    try:
        contact = directory.create_contact(
            db, current_user.id, image_path=image_path, **data
        )
    except Exception:
        images.delete(image_path)
        raise
    return _envelope(contact)


@router.get("/{contact_id}", response_model=schemas.ContactEnvelope)
def get_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Retrieve a single contact by ID for the current user.

    Raises:
        NotFound: If the contact does not exist or is not owned by the user.
    """
    return _envelope(directory.get_contact(db, current_user.id, contact_id))


@router.api_route(
    "/{contact_id}",
    methods=["PUT", "PATCH"],
    response_model=schemas.ContactEnvelope,
)
def update_contact(
    contact_id: int,
    form: ContactForm = Depends(read_contact_form),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    images: ImageStore = Depends(get_image_store),
):
    """
    Update an existing contact. Only fields present in the body change.

    A new image is written, then the record is switched to it, then the
    previous image is removed.
    """
    contact = directory.get_contact(db, current_user.id, contact_id)
    data, image = _validated(form, partial=True)
    if "email" in data:
        _ensure_email_free(db, current_user.id, data["email"], exclude_id=contact.id)

    old_path = contact.image_path
    new_path = None
    if image is not None:
        new_path = images.store(image.data, image.extension)
        data["image_path"] = new_path

    try:
        contact = directory.update_contact(db, current_user.id, contact_id, data)
    except Exception:
        images.delete(new_path)
        raise

    if new_path and old_path:
        try:
            images.delete(old_path)
        except StorageFailure:
            logger.warning(
                "Old contact image left behind", contact_id=contact_id, path=old_path
            )
    return _envelope(contact)


@router.delete(
    "/{contact_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
def delete_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    images: ImageStore = Depends(get_image_store),
):
    """
    Delete a contact owned by the current user, then its image.

    Raises:
        NotFound: If the contact does not exist or is not owned by the user.
    """
    image_path = directory.delete_contact(db, current_user.id, contact_id)
    images.delete(image_path)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
