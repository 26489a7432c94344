import asyncio
import logging
import time

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.concurrency import run_in_threadpool

from filedrop.core.config import Settings
from filedrop.models import FileUpload
from filedrop.monitoring.setup import report_cleanup
from filedrop.services.storage import list_guest_folders, remove_guest_folder

logger = logging.getLogger(__name__)


async def sweep_orphans(
    session_factory: async_sessionmaker[AsyncSession],
    upload_dir: str,
    min_age_seconds: int,
    now: float | None = None,
) -> int:
    """Remove guest folders that no upload row points at any more.

    Folders younger than ``min_age_seconds`` are skipped so an upload that is
    still being written is never touched. Returns the number removed.
    """
    now = time.time() if now is None else now
    folders = await run_in_threadpool(list_guest_folders, upload_dir)
    candidates = [name for name, mtime in folders if now - mtime >= min_age_seconds]
    if not candidates:
        return 0

    async with session_factory() as db:
        res = await db.execute(
            select(FileUpload.guest_folder).where(FileUpload.guest_folder.in_(candidates))
        )
        referenced = set(res.scalars().all())

    removed = 0
    for name in candidates:
        if name in referenced:
            continue
        try:
            await run_in_threadpool(remove_guest_folder, upload_dir, name)
            removed += 1
            logger.info("Removed orphaned guest folder %s", name)
        except OSError as e:
            logger.warning("Could not remove orphaned guest folder %s: %s", name, e)
    return removed


async def run_orphan_sweeper(session_factory: async_sessionmaker[AsyncSession], settings: Settings):
    interval = settings.CLEANUP_INTERVAL_SECONDS
    logger.info("Orphan sweep started: interval=%ss min_age=%ss", interval, settings.CLEANUP_MIN_AGE_SECONDS)

    while True:
        started = time.monotonic()
        try:
            removed = await sweep_orphans(session_factory, settings.UPLOAD_DIR, settings.CLEANUP_MIN_AGE_SECONDS)
            duration = time.monotonic() - started
            report_cleanup(removed, duration)
            logger.info("orphan_sweep_summary removed=%s duration=%.3fs", removed, duration)
            await asyncio.sleep(interval)
        except asyncio.CancelledError:
            logger.info("Orphan sweep cancelled by shutdown")
            raise
        except Exception as e:
            logger.exception("Orphan sweep error: %s", e)
            await asyncio.sleep(min(60, interval))
