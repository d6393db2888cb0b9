# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication and user administration

WHY: Every transaction must be attributable to a cashier. Passwords are
hashed with bcrypt; roles are admin, manager, cashier.
"""

import bcrypt
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Store, Transaction, User
from ..models.auth import ROLES
from ..validation import ConflictError, ValidationError
from storepos.time_utils import utcnow
from . import session_service

BCRYPT_ROUNDS = 12
MIN_PASSWORD_LENGTH = 6


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def authenticate(username: str, password: str) -> User | None:
    """Return the active user for valid credentials, else None."""
    user = db.session.query(User).filter_by(username=(username or "").strip()).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password or "", user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def _resolve_role(role: str | None) -> str:
    if role not in ROLES:
        raise ValidationError("Invalid role")
    return role


def _resolve_store_id(store_id) -> int | None:
    if store_id in (None, ""):
        return None
    try:
        pk = int(str(store_id))
    except ValueError:
        raise ValidationError("Invalid storeId")
    if db.session.get(Store, pk) is None:
        raise ValidationError("Invalid storeId")
    return pk


def _commit_user() -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Username already exists")


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.username.asc()).all()


def create_user(username: str, password: str, role: str, store_id=None, *, rounds: int = BCRYPT_ROUNDS) -> User:
    username = (username or "").strip()
    if not username or not password or not role:
        raise ValidationError("username, password and role are required")

    user = User(
        username=username,
        password_hash=hash_password(password, rounds=rounds),
        role=_resolve_role(role),
        store_id=_resolve_store_id(store_id),
        is_active=True,
    )
    db.session.add(user)
    _commit_user()
    return user


UNSET = object()


def update_user(user_id: int, *, username=None, password=None, role=None, store_id=UNSET, is_active=None) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise LookupError("User not found")

    if username is not None and username.strip():
        user.username = username.strip()
    if password:
        user.password_hash = hash_password(password)
        session_service.revoke_all_user_sessions(user.id)
    if role is not None:
        user.role = _resolve_role(role)
    if store_id is not UNSET:
        user.store_id = _resolve_store_id(store_id)
    if is_active is not None:
        user.is_active = bool(is_active)
        if not user.is_active:
            session_service.revoke_all_user_sessions(user.id)

    _commit_user()
    return user


def delete_user(user_id: int, acting_user_id: int) -> None:
    """
    Remove a user account.

    Users referenced by recorded transactions cannot be removed; the ledger
    keeps its cashier attribution.
    """
    if user_id == acting_user_id:
        raise ValidationError("You cannot delete your own user account")

    user = db.session.get(User, user_id)
    if user is None:
        raise LookupError("User not found")

    has_transactions = db.session.query(
        db.session.query(Transaction).filter_by(cashier_id=user.id).exists()
    ).scalar()
    if has_transactions:
        raise ConflictError("User has recorded transactions and cannot be deleted")

    db.session.delete(user)
    db.session.commit()
