"""Authentication: password hashing, bearer tokens and the ``/auth`` routes."""

import hashlib
import hmac
import secrets

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import crud, schemas
from .core import get_settings
from .database import get_db
from .errors import InvalidCredentials, Unauthenticated
from .models import User
from .validation import validate_login, validate_registration

logger = structlog.get_logger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)
router = APIRouter(prefix="/auth", tags=["auth"])

TOKEN_NAME = "api_token"
# token ids beyond this many digits cannot be a 64-bit primary key
MAX_TOKEN_ID_DIGITS = 18


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Compare a plain password with its hashed value."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Generate a password hash using the configured context."""
    return pwd_context.hash(password)


def hash_token(secret: str) -> str:
    """Digest stored in place of a token's secret part."""
    return hashlib.sha256(secret.encode()).hexdigest()


def issue_token(db: Session, user: User, name: str = TOKEN_NAME) -> str:
    """
    Mint a new bearer token for ``user``.

    The returned value has the form ``<token id>|<secret>``; only the
    SHA-256 of the secret is persisted.

    Returns:
        str: Plain token to hand to the client.
    """
    secret = secrets.token_urlsafe(get_settings().TOKEN_BYTES)
    record = crud.create_token(db, user, hash_token(secret), name)
    return f"{record.id}|{secret}"


def resolve_token(db: Session, token: str | None) -> User:
    """
    Resolve a presented bearer token to its user.

    Raises:
        Unauthenticated: If the token is missing, malformed or revoked.
    """
    if not token:
        raise Unauthenticated()
    token_id, sep, secret = token.partition("|")
    if (
        not sep
        or not secret
        or not (token_id.isascii() and token_id.isdigit())
        or len(token_id) > MAX_TOKEN_ID_DIGITS
    ):
        raise Unauthenticated()
    record = crud.get_token(db, int(token_id))
    if record is None or not hmac.compare_digest(
        record.token_hash, hash_token(secret)
    ):
        raise Unauthenticated()
    crud.touch_token(db, record)
    return record.user


def revoke_all_tokens(db: Session, user: User) -> int:
    """Invalidate every token issued to ``user``; returns how many."""
    return crud.delete_user_tokens(db, user.id)


def register_user(db: Session, name: str, email: str, password: str):
    """
    Create an account and sign it in.

    Raises:
        DuplicateEmail: If the email is already registered.

    Returns:
        tuple[User, str]: The new user and a bearer token.
    """
    user = crud.create_user(db, name, email, get_password_hash(password))
    token = issue_token(db, user)
    logger.info("User registered", user_id=user.id)
    return user, token


def authenticate(db: Session, email: str, password: str) -> User:
    """
    Check a user's credentials.

    Unknown emails and wrong passwords raise the same error.

    Raises:
        InvalidCredentials: If the email/password pair does not match.
    """
    user = crud.get_user_by_email(db, email)
    if user is None:
        # keep the response time of unknown emails close to that of bad passwords
        pwd_context.dummy_verify()
        raise InvalidCredentials()
    if not verify_password(password, user.password_hash):
        raise InvalidCredentials()
    return user


def login_user(db: Session, email: str, password: str):
    """
    Authenticate and issue a new token.

    Returns:
        tuple[User, str]: The user and a bearer token.
    """
    try:
        user = authenticate(db, email, password)
    except InvalidCredentials:
        logger.warning("Login failed")
        raise
    token = issue_token(db, user)
    logger.info("User logged in", user_id=user.id)
    return user, token


def logout_user(db: Session, user: User) -> int:
    """Revoke every token of ``user``. Safe to call repeatedly."""
    revoked = revoke_all_tokens(db, user)
    logger.info("User logged out", user_id=user.id, revoked_tokens=revoked)
    return revoked


def get_current_user(
    token: str | None = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> User:
    """Dependency that returns the user owning the presented bearer token."""
    return resolve_token(db, token)


@router.post(
    "/register", response_model=schemas.AuthResult, status_code=status.HTTP_201_CREATED
)
def register(payload: schemas.RegisterRequest, db: Session = Depends(get_db)):
    """Register a new user and return it together with a bearer token."""

    data = validate_registration(payload.model_dump())
    user, token = register_user(db, data["name"], data["email"], data["password"])
    return schemas.AuthResult(user=schemas.UserOut.model_validate(user), token=token)


@router.post("/login", response_model=schemas.AuthResult)
def login(payload: schemas.LoginRequest, db: Session = Depends(get_db)):
    """Authenticate a user and issue a bearer token."""

    data = validate_login(payload.model_dump())
    user, token = login_user(db, data["email"], data["password"])
    return schemas.AuthResult(user=schemas.UserOut.model_validate(user), token=token)


@router.post("/logout", response_model=schemas.Message)
def logout(
    current_user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    """Revoke all tokens of the authenticated user."""

    logout_user(db, current_user)
    return schemas.Message(message="Logged out")


@router.get("/me", response_model=schemas.CurrentUser)
def me(current_user: User = Depends(get_current_user)):
    """Return the authenticated user."""

    return schemas.CurrentUser(user=schemas.UserOut.model_validate(current_user))
