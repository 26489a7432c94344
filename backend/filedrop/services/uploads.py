from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from filedrop.core.errors import (
    LinkUnavailableError,
    NotFoundError,
    PersistenceError,
    QuotaExceededError,
    StorageError,
    ValidationError,
)
from filedrop.models import FileUpload, UploadLink
from filedrop.monitoring.setup import report_upload
from filedrop.services.links import decrement_remaining_quota, get_upload_link_by_token
from filedrop.services.storage import remove_stored_file, stage_file
from filedrop.utils.dates import utcnow
from filedrop.utils.formatting import to_megabytes

logger = logging.getLogger("filedrop")

DEFAULT_MIME_TYPE = "application/octet-stream"


def quota_exceeded_message(file_size: int, link: UploadLink, lower_bound: bool = False) -> str:
    """``lower_bound`` marks a size counted only until streaming stopped."""
    size = to_megabytes(file_size)
    shown = f"(at least {size:.1f} MB)" if lower_bound else f"({size:.1f} MB)"
    return (
        f"File size {shown} exceeds remaining quota "
        f"({to_megabytes(link.remaining_quota):.1f} MB). "
        f"Total quota: {to_megabytes(link.max_file_size):.1f} MB"
    )


async def get_valid_link(db: AsyncSession, token: str, now: datetime | None = None) -> UploadLink:
    """Look a link up by token and make sure it can still take uploads."""
    link = await get_upload_link_by_token(db, token)
    if link is None:
        logger.warning("Upload link not found token=%s", token)
        raise NotFoundError("Upload link not found")
    if not link.is_valid(now):
        logger.warning("Expired or inactive upload link token=%s link_id=%s", token, link.id)
        raise LinkUnavailableError()
    return link


async def accept_upload(
    db: AsyncSession,
    link: UploadLink,
    upload_dir: str | Path,
    filename: str,
    content_type: str | None,
    read: Callable[[int], Awaitable[bytes]],
    declared_size: int | None = None,
) -> FileUpload:
    """Store one guest file against ``link`` and charge it to the link's quota.

    The file is written first, then its metadata row, then the quota is
    taken with a conditional update. If another upload used the quota up in
    the meantime the row and the file are removed again and the upload is
    rejected. A database error while charging the quota keeps the upload;
    only the quota bookkeeping is off and that is logged.
    """
    if not filename:
        raise ValidationError("No file was uploaded")
    if not link.is_valid():
        raise LinkUnavailableError()
    if declared_size is not None and not link.can_accept_file(declared_size):
        logger.warning("File exceeds remaining quota link_id=%s filename=%r size=%s remaining=%s",
                       link.id, filename, declared_size, link.remaining_quota)
        report_upload("quota_exceeded")
        raise QuotaExceededError(quota_exceeded_message(declared_size, link))

    link_id = link.id
    mime_type = content_type or DEFAULT_MIME_TYPE

    async with stage_file(upload_dir, filename) as staged:
        try:
            size = await staged.write_from(read, max_bytes=link.remaining_quota)
        except QuotaExceededError:
            report_upload("quota_exceeded")
            raise QuotaExceededError(quota_exceeded_message(staged.size, link, lower_bound=True)) from None
        except StorageError:
            report_upload("storage_error")
            raise

        upload = FileUpload(
            link_id=link_id,
            original_filename=filename,
            stored_filename=staged.stored_filename,
            file_size=size,
            mime_type=mime_type,
            uploaded_at=utcnow(),
            guest_folder=staged.guest_folder,
        )
        db.add(upload)
        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            await _reload(db, link)
            logger.exception("Failed to save upload information link_id=%s filename=%r: %s",
                             link_id, filename, e)
            report_upload("persistence_error")
            raise PersistenceError("Failed to save upload information") from e

        upload_id = upload.id
        try:
            charged = await decrement_remaining_quota(db, link_id, size)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            staged.keep()
            logger.error("Failed to update remaining quota link_id=%s upload_id=%s size=%s: %s",
                         link_id, upload_id, size, e)
            report_upload("accepted", size)
            await _reload(db, upload, link)
            return upload

        if not charged:
            logger.warning("Quota taken by a concurrent upload link_id=%s upload_id=%s size=%s",
                           link_id, upload_id, size)
            await _withdraw_upload(db, upload, staged)
            await db.refresh(link)
            report_upload("quota_exceeded")
            raise QuotaExceededError(quota_exceeded_message(size, link))

        staged.keep()

    await db.refresh(link)
    logger.info("File upload completed link_id=%s upload_id=%s filename=%r size_mb=%.2f guest_folder=%s remaining=%s",
                link.id, upload.id, filename, to_megabytes(size), upload.guest_folder, link.remaining_quota)
    report_upload("accepted", size)
    return upload


async def _reload(db: AsyncSession, *instances) -> None:
    """Refresh instances expired by a rollback so callers can keep reading them."""
    for instance in instances:
        await db.refresh(instance)


async def _withdraw_upload(db: AsyncSession, upload: FileUpload, staged) -> None:
    upload_id = upload.id
    try:
        await db.delete(upload)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        # the row survived, so the file it points at has to stay as well
        staged.keep()
        logger.error("Could not withdraw upload %s after losing the quota race: %s", upload_id, e)


async def get_file_upload_by_id(db: AsyncSession, upload_id: str) -> FileUpload | None:
    res = await db.execute(select(FileUpload).where(FileUpload.id == upload_id))
    return res.scalars().first()


async def list_file_uploads(db: AsyncSession) -> list[FileUpload]:
    res = await db.execute(
        select(FileUpload).options(selectinload(FileUpload.link)).order_by(FileUpload.uploaded_at.desc())
    )
    return list(res.scalars().all())


async def list_uploads_for_link(db: AsyncSession, link_id: str) -> list[FileUpload]:
    res = await db.execute(
        select(FileUpload).where(FileUpload.link_id == link_id).order_by(FileUpload.uploaded_at.desc())
    )
    return list(res.scalars().all())


async def list_uploads_grouped(db: AsyncSession) -> list[tuple[UploadLink, list[FileUpload]]]:
    """Uploads grouped by their link, newest link first, newest file first."""
    groups: dict[str, tuple[UploadLink, list[FileUpload]]] = {}
    for upload in await list_file_uploads(db):
        groups.setdefault(upload.link_id, (upload.link, []))[1].append(upload)
    return sorted(groups.values(), key=lambda g: g[0].created_at, reverse=True)


async def count_file_uploads(db: AsyncSession) -> int:
    return (await db.execute(select(func.count()).select_from(FileUpload))).scalar_one()


async def total_uploaded_bytes(db: AsyncSession) -> int:
    return (await db.execute(select(func.coalesce(func.sum(FileUpload.file_size), 0)))).scalar_one()


async def delete_file_upload(db: AsyncSession, upload_id: str, upload_dir: str | Path) -> FileUpload:
    """Remove the file from disk (best effort) and then its metadata row.

    The two steps are not transactional: a failed unlink is logged and the
    row is deleted anyway, which can leave an orphan on disk.
    """
    upload = await get_file_upload_by_id(db, upload_id)
    if upload is None:
        raise NotFoundError("Upload not found")

    if not await remove_stored_file(upload_dir, upload.guest_folder, upload.stored_filename):
        logger.warning("Upload %s removed from disk incompletely; orphan may remain in %s",
                       upload.id, upload.guest_folder)

    await db.delete(upload)
    await db.commit()
    logger.info("Deleted upload id=%s filename=%r", upload.id, upload.original_filename)
    return upload
