"""
Customer and driver accounts.

Passwords are stored as bcrypt hashes; the work factor comes from
``BCRYPT_ROUNDS`` (default 12).  Emails are compared lower-cased.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import bcrypt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from roadside.config import settings
from roadside.domain.enums import UserRole
from roadside.domain.errors import EmailAlreadyRegistered, ValidationError
from roadside.domain.eta import utcnow
from roadside.infrastructure.models import UserModel
from roadside.infrastructure.repositories import UserRepository

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


async def register_user(
    session: AsyncSession,
    *,
    name: Optional[str],
    email: Optional[str],
    password: Optional[str],
    license_plate: Optional[str] = None,
    role: UserRole | str = UserRole.CUSTOMER,
) -> UserModel:
    """Create an account; the email must not be registered yet."""
    name = (name or "").strip()
    email = (email or "").strip().lower()
    if not name or not email or not password:
        raise ValidationError("Please provide name, email, and password.")
    if "@" not in email:
        raise ValidationError(f"Invalid email: {email}")
    # bcrypt only reads the first 72 bytes
    if len(password.encode("utf-8")) > 72:
        raise ValidationError("Password must be at most 72 bytes")
    try:
        role = UserRole(role)
    except ValueError:
        raise ValidationError(f"Unknown role: {role}") from None

    users = UserRepository(session)
    if await users.get_by_email(email) is not None:
        raise EmailAlreadyRegistered()

    # bcrypt runs in a worker thread
    password_hash = await asyncio.to_thread(hash_password, password)
    user = UserModel(
        name=name,
        email=email,
        password_hash=password_hash,
        license_plate=(license_plate or "").strip().upper() or None,
        role=role,
        created_at=utcnow(),
    )
    try:
        await users.create(user)
    except IntegrityError as exc:
        raise EmailAlreadyRegistered() from exc

    logger.info("Registered %s %s (user %s)", role.value, email, user.id)
    return user
