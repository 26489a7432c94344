"""Local disk storage for guest uploads.

Files live at ``<upload_root>/<guest_folder>/<stored_filename>``; both path
components are generated here, never taken from the client.
"""

from __future__ import annotations

import logging
import os
import shutil
import uuid
from contextlib import asynccontextmanager
from pathlib import Path, PurePath
from typing import AsyncIterator, Awaitable, Callable

import anyio

from filedrop.core.errors import QuotaExceededError, StorageError

logger = logging.getLogger("filedrop")

CHUNK_SIZE = 1024 * 1024


def safe_extension(filename: str) -> str:
    suffix = PurePath(filename.replace("\\", "/")).suffix.lstrip(".")
    if suffix and len(suffix) <= 16 and suffix.isalnum():
        return suffix.lower()
    return ""


def make_stored_filename(original_filename: str) -> str:
    ext = safe_extension(original_filename)
    name = str(uuid.uuid4())
    return f"{name}.{ext}" if ext else name


class StagedFile:
    """A file written under a fresh guest folder that is removed again unless
    :meth:`keep` is called before the staging scope exits."""

    def __init__(self, upload_dir: Path, original_filename: str):
        self.upload_dir = upload_dir
        self.guest_folder = str(uuid.uuid4())
        self.stored_filename = make_stored_filename(original_filename)
        self.size = 0
        self._kept = False

    @property
    def folder(self) -> Path:
        return self.upload_dir / self.guest_folder

    @property
    def path(self) -> Path:
        return self.folder / self.stored_filename

    @property
    def kept(self) -> bool:
        return self._kept

    def keep(self) -> None:
        self._kept = True

    async def write_from(
        self,
        read: Callable[[int], Awaitable[bytes]],
        max_bytes: int | None = None,
    ) -> int:
        """Stream chunks from ``read`` to disk; returns the number of bytes written."""
        try:
            await anyio.Path(self.folder).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Failed to create upload directory %s: %s", self.folder, e)
            raise StorageError("Failed to create upload directory") from e

        try:
            async with await anyio.open_file(self.path, "wb") as out:
                while True:
                    chunk = await read(CHUNK_SIZE)
                    if not chunk:
                        break
                    self.size += len(chunk)
                    if max_bytes is not None and self.size > max_bytes:
                        raise QuotaExceededError()
                    await out.write(chunk)
        except OSError as e:
            logger.error("Failed to write file %s: %s", self.path, e)
            raise StorageError("Failed to save uploaded file") from e

        logger.debug("Wrote %s bytes to %s", self.size, self.path)
        return self.size

    async def discard(self) -> None:
        await remove_stored_file(self.upload_dir, self.guest_folder, self.stored_filename)


@asynccontextmanager
async def stage_file(upload_dir: str | Path, original_filename: str) -> AsyncIterator[StagedFile]:
    staged = StagedFile(Path(upload_dir), original_filename)
    try:
        yield staged
    finally:
        if not staged.kept:
            with anyio.CancelScope(shield=True):
                await staged.discard()


async def remove_stored_file(upload_dir: str | Path, guest_folder: str, stored_filename: str) -> bool:
    """Best-effort removal of a stored file and its guest folder.

    Returns False when something was left behind; the caller carries on
    either way.
    """
    folder = Path(upload_dir) / guest_folder
    ok = True
    try:
        await anyio.Path(folder / stored_filename).unlink(missing_ok=True)
    except OSError as e:
        ok = False
        logger.warning("Could not remove %s: %s", folder / stored_filename, e)
    try:
        await anyio.Path(folder).rmdir()
    except FileNotFoundError:
        pass
    except OSError as e:
        ok = False
        logger.warning("Could not remove guest folder %s: %s", folder, e)
    return ok


def ensure_upload_root(upload_dir: str | Path) -> Path:
    path = Path(upload_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def list_guest_folders(upload_dir: str | Path) -> list[tuple[str, float]]:
    """(folder name, mtime) for every directory directly under the upload root."""
    root = Path(upload_dir)
    if not root.is_dir():
        return []
    out = []
    with os.scandir(root) as it:
        for entry in it:
            if entry.is_dir(follow_symlinks=False):
                out.append((entry.name, entry.stat(follow_symlinks=False).st_mtime))
    return out


def remove_guest_folder(upload_dir: str | Path, guest_folder: str) -> None:
    shutil.rmtree(Path(upload_dir) / guest_folder)


def is_writable_dir(path: str | Path) -> bool:
    p = Path(path)
    return p.is_dir() and os.access(p, os.W_OK)
