# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication and account creation.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- The very first account becomes the superadmin; afterwards self-registration
  only creates customers. Elevated roles are handed out by staff.
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
from flask import current_app, has_app_context

from ..extensions import db
from ..models import User
from ..models.auth import ROLE_USER, ROLE_SUPERADMIN, ROLES
from ..permissions import can_assign_role
from ..validation import ValidationError, ConflictError, EMAIL_RE


MIN_PASSWORD_LENGTH = 8
DEFAULT_BCRYPT_ROUNDS = 12


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


class RoleAssignmentError(Exception):
    """Raised when the caller may not hand out the requested role (403)."""


def validate_password_strength(password: str) -> None:
    """Raises PasswordValidationError if the password is too short."""
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
            fields={"password": [f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"]},
        )


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12 (BCRYPT_ROUNDS overrides it).

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    rounds = DEFAULT_BCRYPT_ROUNDS
    if has_app_context():
        rounds = current_app.config.get("BCRYPT_ROUNDS", DEFAULT_BCRYPT_ROUNDS)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except (ValueError, TypeError):
        return False


def _normalize_email(email) -> str:
    if not isinstance(email, str) or not EMAIL_RE.match(email.strip()):
        raise ValidationError("Enter a valid email", fields={"email": ["Enter a valid email"]})
    return email.strip().lower()


def _validate_name(name) -> str:
    if not isinstance(name, str) or not (2 <= len(name.strip()) <= 50):
        raise ValidationError("Name must be 2-50 characters", fields={"name": ["Name must be 2-50 characters"]})
    return name.strip()


def _validate_phone(phone) -> str:
    if phone in (None, ""):
        return ""
    if not isinstance(phone, str) or not (8 <= len(phone.strip()) <= 20):
        raise ValidationError("Enter a valid phone number", fields={"phone": ["Enter a valid phone number"]})
    return phone.strip()


def _insert_user(name: str, email: str, password: str, phone: str, role: str) -> User:
    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("Email already in use")

    user = User(
        name=name,
        email=email,
        phone=phone,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def register_user(
    name: str,
    email: str,
    password: str,
    phone: str | None = None,
    role: str | None = None,
) -> User:
    """
    Self-registration.

    The first account in an empty store becomes superadmin (or the requested role).
    Later registrations may only create role "user".

    Raises:
        ValidationError: bad name/email/phone/password or unknown role
        RoleAssignmentError: elevated role requested by a non-bootstrap registration
        ConflictError: email already registered
    """
    name = _validate_name(name)
    email = _normalize_email(email)
    phone = _validate_phone(phone)
    if role is not None and role not in ROLES:
        raise ValidationError(f"Role must be one of {', '.join(ROLES)}")

    if db.session.query(User).count() == 0:
        assigned_role = role or ROLE_SUPERADMIN
    elif role and role != ROLE_USER:
        raise RoleAssignmentError("Only existing admins can assign elevated roles")
    else:
        assigned_role = ROLE_USER

    return _insert_user(name, email, password, phone, assigned_role)


def create_user_by_staff(
    actor: User,
    name: str,
    email: str,
    password: str,
    role: str | None = None,
    phone: str | None = None,
) -> User:
    """
    Account creation from the admin panel.

    superadmin may assign any role; admin may only create customers.
    """
    name = _validate_name(name)
    email = _normalize_email(email)
    phone = _validate_phone(phone)
    desired_role = role or ROLE_USER
    if desired_role not in ROLES:
        raise ValidationError(f"Role must be one of {', '.join(ROLES)}")
    if not can_assign_role(actor.role, desired_role):
        raise RoleAssignmentError("You cannot assign that role")

    return _insert_user(name, email, password, phone, desired_role)


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate by email and password.

    Returns the active User on success, None otherwise.
    """
    if not isinstance(email, str) or not isinstance(password, str):
        return None
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user
