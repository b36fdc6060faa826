"""Request input validation.

Each validator takes the raw mapping received from the client, checks it
and returns a cleaned dictionary. Problems are collected per field and
raised together as a single ``ValidationFailed`` whose details map each
field to a list of stable error codes.
"""

import os
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from email_validator import EmailNotValidError, validate_email

from .core import get_settings
from .errors import ValidationFailed

PHONE_PATTERN = re.compile(r"^[0-9\s\-\(\)]{8,20}$")
IMAGE_EXTENSIONS = {"jpeg", "jpg", "png", "gif"}

_IMAGE_SIGNATURES = (
    b"\xff\xd8\xff",
    b"\x89PNG\r\n\x1a\n",
    b"GIF87a",
    b"GIF89a",
)


@dataclass
class ImageUpload:
    """An uploaded image, already read into memory."""

    filename: str
    content_type: Optional[str]
    data: bytes

    @property
    def extension(self) -> str:
        return os.path.splitext(self.filename or "")[1].lstrip(".").lower()


class _Errors:
    def __init__(self):
        self.fields: Dict[str, List[str]] = {}

    def add(self, field: str, code: str) -> None:
        self.fields.setdefault(field, []).append(code)

    def raise_if_any(self) -> None:
        if self.fields:
            raise ValidationFailed(self.fields)


def _text(
    errors: _Errors,
    data: Mapping[str, Any],
    field: str,
    min_length: int = 0,
    max_length: int = 255,
) -> Optional[str]:
    value = data.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        errors.add(field, "required")
        return None
    if not isinstance(value, str):
        errors.add(field, "string")
        return None
    value = value.strip()
    if len(value) < min_length:
        errors.add(field, "min")
    elif len(value) > max_length:
        errors.add(field, "max")
    return value


def _email(errors: _Errors, field: str, value: str) -> str:
    if len(value) > 255:
        errors.add(field, "max")
        return value
    try:
        return validate_email(value, check_deliverability=False).normalized
    except EmailNotValidError:
        errors.add(field, "email")
        return value


def validate_registration(data: Mapping[str, Any]) -> Dict[str, str]:
    """Validate a registration payload."""
    errors = _Errors()
    name = _text(errors, data, "name", min_length=3)
    email = _text(errors, data, "email")
    if email is not None and "email" not in errors.fields:
        email = _email(errors, "email", email)

    password = data.get("password")
    if not password:
        errors.add("password", "required")
    elif not isinstance(password, str):
        errors.add("password", "string")
    elif len(password) < 6:
        errors.add("password", "min")
    elif len(password) > 255:
        errors.add("password", "max")
    elif data.get("password_confirmation") != password:
        errors.add("password", "confirmed")

    errors.raise_if_any()
    return {"name": name, "email": email, "password": password}


def validate_login(data: Mapping[str, Any]) -> Dict[str, str]:
    """Validate a login payload."""
    errors = _Errors()
    email = _text(errors, data, "email")
    if email is not None and "email" not in errors.fields:
        email = _email(errors, "email", email)
    password = data.get("password")
    if not password:
        errors.add("password", "required")
    elif not isinstance(password, str):
        errors.add("password", "string")
    errors.raise_if_any()
    return {"email": email, "password": password}


def validate_contact(data: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Validate contact fields.

    With ``partial`` set (updates), fields missing from ``data`` are left
    out of the result; fields that are present obey the same rules as on
    create, so name and phone can never be cleared.

    Returns:
        dict: Cleaned ``name``/``phone``/``email`` values.
    """
    errors = _Errors()
    cleaned: Dict[str, Any] = {}

    if not partial or "name" in data:
        cleaned["name"] = _text(errors, data, "name", min_length=3)

    if not partial or "phone" in data:
        phone = _text(errors, data, "phone", max_length=20)
        if phone is not None and "phone" not in errors.fields:
            if not PHONE_PATTERN.match(phone):
                errors.add("phone", "format")
        cleaned["phone"] = phone

    if not partial or "email" in data:
        email = data.get("email")
        if email is None or (isinstance(email, str) and not email.strip()):
            cleaned["email"] = None
        elif not isinstance(email, str):
            errors.add("email", "string")
        else:
            cleaned["email"] = _email(errors, "email", email.strip())

    errors.raise_if_any()
    return cleaned


def validate_image(upload: ImageUpload) -> ImageUpload:
    """Check an uploaded contact image: type, real content and size."""
    errors = _Errors()
    if not upload.data.startswith(_IMAGE_SIGNATURES):
        errors.add("image", "image")
    if upload.extension not in IMAGE_EXTENSIONS:
        errors.add("image", "mimes")
    if len(upload.data) > get_settings().MAX_IMAGE_BYTES:
        errors.add("image", "max_size")
    errors.raise_if_any()
    return upload
