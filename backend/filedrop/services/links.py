from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.core.errors import NotFoundError, ValidationError
from filedrop.models import FileUpload, UploadLink
from filedrop.utils.dates import utcnow

logger = logging.getLogger("filedrop")

LINK_HAS_UPLOADS = "Cannot delete link: it still has uploaded files. Please delete the files first."


async def create_upload_link(
    db: AsyncSession,
    name: str,
    max_file_size: int,
    expires_at: datetime | None = None,
) -> UploadLink:
    if max_file_size <= 0:
        raise ValidationError("Quota must be greater than zero")

    link = UploadLink(
        name=name,
        max_file_size=max_file_size,
        remaining_quota=max_file_size,
        expires_at=expires_at,
        created_at=utcnow(),
        is_active=True,
    )
    db.add(link)
    await db.commit()
    await db.refresh(link)
    logger.info("Created upload link id=%s name=%r quota=%s expires_at=%s",
                link.id, link.name, link.max_file_size, link.expires_at)
    return link


async def get_upload_link_by_token(db: AsyncSession, token: str) -> UploadLink | None:
    res = await db.execute(select(UploadLink).where(UploadLink.token == token))
    return res.scalars().first()


async def get_upload_link_by_id(db: AsyncSession, link_id: str) -> UploadLink | None:
    res = await db.execute(select(UploadLink).where(UploadLink.id == link_id))
    return res.scalars().first()


async def list_upload_links(db: AsyncSession) -> list[UploadLink]:
    res = await db.execute(select(UploadLink).order_by(UploadLink.created_at.desc()))
    return list(res.scalars().all())


async def count_valid_links(db: AsyncSession, now: datetime | None = None) -> int:
    now = now or utcnow()
    return sum(1 for link in await list_upload_links(db) if link.is_valid(now))


async def count_uploads_for_link(db: AsyncSession, link_id: str) -> int:
    stmt = select(func.count()).select_from(FileUpload).where(FileUpload.link_id == link_id)
    return (await db.execute(stmt)).scalar_one()


async def delete_upload_link(db: AsyncSession, link_id: str) -> None:
    """Delete a link that owns no uploads.

    Raises NotFoundError for an unknown id and ValidationError when files are
    still attached to the link.
    """
    link = await get_upload_link_by_id(db, link_id)
    if link is None:
        raise NotFoundError("Upload link not found")
    if await count_uploads_for_link(db, link_id):
        logger.warning("Refusing to delete link id=%s: it still has uploads", link_id)
        raise ValidationError(LINK_HAS_UPLOADS)

    await db.delete(link)
    await db.commit()
    logger.info("Deleted upload link id=%s name=%r", link_id, link.name)


async def set_link_active(db: AsyncSession, link_id: str, active: bool) -> UploadLink:
    link = await get_upload_link_by_id(db, link_id)
    if link is None:
        raise NotFoundError("Upload link not found")
    link.is_active = active
    await db.commit()
    logger.info("Upload link id=%s is_active=%s", link_id, active)
    return link


async def decrement_remaining_quota(db: AsyncSession, link_id: str, size: int) -> bool:
    """Take ``size`` bytes off the link's quota in one conditional statement.

    Returns False when the link no longer has that much quota left, in which
    case nothing is changed. The caller owns the transaction.
    """
    stmt = (
        update(UploadLink)
        .where(UploadLink.id == link_id, UploadLink.remaining_quota >= size)
        .values(remaining_quota=UploadLink.remaining_quota - size)
        .execution_options(synchronize_session=False)
    )
    res = await db.execute(stmt)
    return res.rowcount == 1
