"""User accounts."""
from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from forge import models

logger = logging.getLogger(__name__)


class UserError(Exception):
    """Raised when a user operation is invalid."""
    pass


class UserNotFoundError(UserError):
    pass


async def get_user(session: AsyncSession, user_id: int) -> models.User:
    user = await session.get(models.User, user_id)
    if user is None:
        raise UserNotFoundError(f"User {user_id} not found")
    return user


async def create_user(
    session: AsyncSession,
    *,
    email: str,
    full_name: str,
    phone: str | None = None,
    location: str | None = None,
    linkedin_url: str | None = None,
) -> models.User:
    """Create a user; emails are unique case-insensitively.

    Raises:
        UserError: If the email is already registered
    """
    email = email.strip().lower()
    existing = await session.execute(select(models.User.id).where(func.lower(models.User.email) == email))
    if existing.first() is not None:
        raise UserError(f"A user with email {email} already exists")

    user = models.User(
        email=email,
        full_name=full_name.strip(),
        phone=phone,
        location=location,
        linkedin_url=linkedin_url,
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise UserError(f"A user with email {email} already exists") from e

    logger.info(f"Created user {user.id}")
    return user


def fill_missing_contact_details(user: models.User, **details: str | None) -> list[str]:
    """Copy contact details onto the user where the profile has none.

    Returns:
        Names of the fields that were filled
    """
    filled = []
    for name in ("phone", "location", "linkedin_url"):
        value = details.get(name)
        if value and value.strip() and not getattr(user, name):
            setattr(user, name, value.strip())
            filled.append(name)
    return filled
