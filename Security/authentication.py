"""
SECURE USER AUTHENTICATION
==========================
Authenticate users using hashed credentials.

FLOW:
- Normalize the login identifier and query the user by email.
- Verify the password hash; the login route drives lockout around it.
- mask_email() keeps unknown identifiers out of the audit log.

WHY:
- Ensures only valid users can access the system.

HOW:
- Uses Argon2 hashes to verify passwords without storing raw secrets;
  legacy bcrypt hashes still verify.
"""

from passlib.context import CryptContext
from passlib.exc import UnknownHashError
from sqlalchemy.orm import Session

from app.models import User


pwd_context = CryptContext(
    schemes=["argon2", "bcrypt"],
    deprecated="auto",
)


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def hash_password(password: str) -> str:
    """
    Hash a plain text password using Argon2.
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain text password against a stored hash.
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (UnknownHashError, ValueError, TypeError):
        return False


def find_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def mask_email(value: str | None, visible: int = 3) -> str:
    """Short prefix of a login identifier, e.g. for attempts against unknown accounts."""
    return f"{(value or '')[:visible]}***"
