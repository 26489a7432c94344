from __future__ import annotations

import logging
import secrets

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.core.config import Settings
from filedrop.core.errors import PersistenceError, ValidationError
from filedrop.core.security import get_password_hash, verify_password
from filedrop.models import Admin

logger = logging.getLogger("filedrop")


async def get_admin_by_username(db: AsyncSession, username: str) -> Admin | None:
    res = await db.execute(select(Admin).where(Admin.username == username))
    return res.scalars().first()


async def count_admins(db: AsyncSession) -> int:
    return (await db.execute(select(func.count()).select_from(Admin))).scalar_one()


async def ensure_default_admin(db: AsyncSession, settings: Settings) -> Admin | None:
    """Create the first admin account if the table is empty.

    The password comes from ADMIN_PASSWORD. Without it a random one is
    generated and logged once, so the deployment never ships a known default.
    """
    if await count_admins(db):
        return None

    password = settings.ADMIN_PASSWORD
    generated = not password
    if generated:
        password = secrets.token_urlsafe(12)

    admin = Admin(
        username=settings.ADMIN_USERNAME,
        password_hash=get_password_hash(password, settings.BCRYPT_ROUNDS),
    )
    db.add(admin)
    await db.commit()
    await db.refresh(admin)

    if generated:
        logger.warning(
            "Created admin user %r with generated password %r; change it after first login",
            admin.username, password,
        )
    else:
        logger.info("Created admin user %r from ADMIN_PASSWORD", admin.username)
    return admin


async def authenticate(db: AsyncSession, username: str, password: str) -> Admin | None:
    admin = await get_admin_by_username(db, username)
    if admin is None:
        logger.warning("Login failed: unknown admin username=%s", username)
        return None
    if not verify_password(password, admin.password_hash):
        logger.warning("Login failed: bad password username=%s", username)
        return None
    return admin


async def change_password(
    db: AsyncSession,
    username: str,
    current_password: str,
    new_password: str,
    confirm_password: str,
    settings: Settings,
) -> None:
    if new_password != confirm_password:
        raise ValidationError("New passwords do not match")
    if len(new_password) < settings.MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long"
        )
    if len(new_password.encode("utf-8")) > 72:
        raise ValidationError("Password must be at most 72 bytes long")

    admin = await get_admin_by_username(db, username)
    if admin is None:
        raise ValidationError("Admin user not found")
    if not verify_password(current_password, admin.password_hash):
        raise ValidationError("Current password is incorrect")

    new_hash = get_password_hash(new_password, settings.BCRYPT_ROUNDS)
    try:
        await db.execute(
            update(Admin).where(Admin.username == username).values(password_hash=new_hash)
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Password update failed for %s: %s", username, e)
        raise PersistenceError("Failed to update password in database") from e
    logger.info("Password changed for admin %s", username)
