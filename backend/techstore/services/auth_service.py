# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication and page-access service.

WHY: Every stock, sale and wallet movement must be attributable to a staff
account. Uses bcrypt for password hashing and validates password strength.

ROLES:
- admin: full access, manages users and page grants
- staff: access limited to the admin pages granted in page_permissions

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, mixed case, digit and special char
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re

from ..extensions import db
from ..models import User, PagePermission
from techstore.time_utils import utcnow


VALID_ROLES = {"admin", "staff"}


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class UserError(ValueError):
    """Raised for invalid user or permission operations."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12 (strength validated first)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    role: str = "staff",
    full_name: str | None = None,
) -> User:
    """
    Create new staff account with bcrypt password hashing.

    Raises:
        UserError: If the role is unknown or username/email is taken
        PasswordValidationError: If password doesn't meet requirements
    """
    username = (username or "").strip()
    email = (email or "").strip()
    if not username or not email:
        raise UserError("username and email are required")
    if role not in VALID_ROLES:
        raise UserError(f"role must be one of: {', '.join(sorted(VALID_ROLES))}")

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise UserError("Username or email already exists")

    user = User(
        username=username,
        email=email,
        full_name=full_name,
        password_hash=hash_password(password),
        role=role,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate by username or email.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def has_page_access(user: User, page_path: str) -> bool:
    """Admins see every page; staff need an explicit grant."""
    if user.is_admin:
        return True
    return db.session.query(PagePermission.id).filter_by(
        user_id=user.id, page_path=page_path
    ).first() is not None


def get_page_permissions(user_id: int) -> list[str]:
    rows = db.session.query(PagePermission.page_path).filter_by(user_id=user_id).order_by(PagePermission.page_path).all()
    return [row[0] for row in rows]


def grant_page_access(user_id: int, page_path: str) -> PagePermission:
    page_path = (page_path or "").strip()
    if not page_path.startswith("/"):
        raise UserError("page_path must start with '/'")

    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise UserError("User not found")

    existing = db.session.query(PagePermission).filter_by(user_id=user_id, page_path=page_path).first()
    if existing:
        return existing

    permission = PagePermission(user_id=user_id, page_path=page_path)
    db.session.add(permission)
    db.session.commit()
    return permission


def revoke_page_access(user_id: int, page_path: str) -> bool:
    deleted = db.session.query(PagePermission).filter_by(
        user_id=user_id, page_path=page_path
    ).delete(synchronize_session=False)
    db.session.commit()
    return bool(deleted)
