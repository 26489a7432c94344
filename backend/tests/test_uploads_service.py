import asyncio
from datetime import timedelta
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from filedrop.core.errors import (
    LinkUnavailableError,
    NotFoundError,
    PersistenceError,
    QuotaExceededError,
    ValidationError,
)
from filedrop.services import links, uploads
from filedrop.utils.dates import utcnow

from .conftest import reader

pytestmark = pytest.mark.anyio

MIB = 1024 * 1024


def stored_files(upload_dir):
    root = Path(upload_dir)
    return sorted(p for p in root.rglob("*") if p.is_file()) if root.exists() else []


async def upload(db, link, upload_dir, data, filename="photo.jpg", content_type="image/jpeg"):
    return await uploads.accept_upload(
        db, link, upload_dir, filename, content_type, reader(data), declared_size=len(data)
    )


class TestGetValidLink:
    async def test_unknown_token(self, db):
        with pytest.raises(NotFoundError):
            await uploads.get_valid_link(db, "missing")

    async def test_expired_link(self, db):
        link = await links.create_upload_link(db, "old", 10, expires_at=utcnow() - timedelta(minutes=1))
        with pytest.raises(LinkUnavailableError):
            await uploads.get_valid_link(db, link.token)

    async def test_inactive_link(self, db):
        link = await links.create_upload_link(db, "off", 10)
        await links.set_link_active(db, link.id, False)
        with pytest.raises(LinkUnavailableError):
            await uploads.get_valid_link(db, link.token)

    async def test_valid_link(self, db):
        link = await links.create_upload_link(db, "ok", 10)
        assert (await uploads.get_valid_link(db, link.token)).id == link.id


class TestAcceptUpload:
    async def test_accepted_upload_charges_quota(self, db, upload_dir):
        link = await links.create_upload_link(db, "q", 1000)
        record = await upload(db, link, upload_dir, b"a" * 300, filename="notes.txt", content_type="text/plain")

        assert link.remaining_quota == 700
        assert record.file_size == 300
        assert record.original_filename == "notes.txt"
        assert record.mime_type == "text/plain"
        assert record.stored_filename.endswith(".txt")
        assert record.file_path(upload_dir).read_bytes() == b"a" * 300
        assert await uploads.count_file_uploads(db) == 1

    async def test_one_mebibyte_scenario(self, db, upload_dir):
        link = await links.create_upload_link(db, "1 MB", 1 * MIB)

        with pytest.raises(QuotaExceededError) as exc:
            await upload(db, link, upload_dir, b"\0" * 2_000_000)
        assert "exceeds remaining quota" in exc.value.message
        assert "1.9 MB" in exc.value.message
        assert stored_files(upload_dir) == []

        await upload(db, link, upload_dir, b"\0" * 500_000)
        assert link.remaining_quota == 548_576

    async def test_exact_remaining_quota_is_accepted(self, db, upload_dir):
        link = await links.create_upload_link(db, "exact", 64)
        await upload(db, link, upload_dir, b"x" * 64)
        assert link.remaining_quota == 0
        assert link.is_valid() is False

    async def test_undeclared_oversize_body_is_caught_while_streaming(self, db, upload_dir):
        link = await links.create_upload_link(db, "small", 10)
        with pytest.raises(QuotaExceededError):
            await uploads.accept_upload(db, link, upload_dir, "a.bin", None, reader(b"x" * 11))
        assert stored_files(upload_dir) == []
        await db.refresh(link)
        assert link.remaining_quota == 10

    async def test_undeclared_overrun_reports_size_as_lower_bound(self, db, upload_dir):
        link = await links.create_upload_link(db, "1 MB", MIB)
        with pytest.raises(QuotaExceededError) as exc:
            await uploads.accept_upload(db, link, upload_dir, "big.bin", None, reader(b"\0" * (5 * MIB)))
        assert exc.value.message.startswith("File size (at least 2.0 MB) exceeds remaining quota (1.0 MB)")
        assert stored_files(upload_dir) == []

    async def test_missing_filename(self, db, upload_dir):
        link = await links.create_upload_link(db, "q", 10)
        with pytest.raises(ValidationError, match="No file was uploaded"):
            await uploads.accept_upload(db, link, upload_dir, "", None, reader(b"x"))

    async def test_invalid_link_rejected(self, db, upload_dir):
        link = await links.create_upload_link(db, "q", 10)
        await links.set_link_active(db, link.id, False)
        with pytest.raises(LinkUnavailableError):
            await upload(db, link, upload_dir, b"x")

    async def test_default_mime_type(self, db, upload_dir):
        link = await links.create_upload_link(db, "q", 10)
        record = await uploads.accept_upload(db, link, upload_dir, "blob", None, reader(b"x"), declared_size=1)
        assert record.mime_type == "application/octet-stream"
        assert "." not in record.stored_filename

    async def test_each_upload_gets_its_own_guest_folder(self, db, upload_dir):
        link = await links.create_upload_link(db, "q", 10)
        a = await upload(db, link, upload_dir, b"a")
        b = await upload(db, link, upload_dir, b"b")
        assert a.guest_folder != b.guest_folder

    async def test_metadata_failure_removes_the_file(self, db, upload_dir):
        link = await links.create_upload_link(db, "q", 100)
        with patch.object(db, "commit", AsyncMock(side_effect=SQLAlchemyError("disk I/O error"))):
            with pytest.raises(PersistenceError, match="Failed to save upload information"):
                await upload(db, link, upload_dir, b"x" * 10)
        assert stored_files(upload_dir) == []
        assert await uploads.count_file_uploads(db) == 0

    async def test_quota_update_failure_keeps_the_upload(self, db, upload_dir):
        link = await links.create_upload_link(db, "q", 100)
        failing = AsyncMock(side_effect=SQLAlchemyError("database is locked"))
        with patch("filedrop.services.uploads.decrement_remaining_quota", failing):
            record = await upload(db, link, upload_dir, b"x" * 10)

        assert record.file_path(upload_dir).exists()
        assert await uploads.get_file_upload_by_id(db, record.id) is not None
        await db.refresh(link)
        assert link.remaining_quota == 100

    async def test_losing_the_quota_race_withdraws_the_upload(self, db, upload_dir):
        link = await links.create_upload_link(db, "q", 100)
        with patch("filedrop.services.uploads.decrement_remaining_quota", AsyncMock(return_value=False)):
            with pytest.raises(QuotaExceededError):
                await upload(db, link, upload_dir, b"x" * 10)

        assert stored_files(upload_dir) == []
        assert await uploads.count_file_uploads(db) == 0


async def test_concurrent_uploads_never_overdraw(session_factory, upload_dir):
    async with session_factory() as db:
        link = await links.create_upload_link(db, "race", 100)
    link_id = link.id

    async def attempt():
        async with session_factory() as db:
            own = await links.get_upload_link_by_id(db, link_id)
            try:
                await upload(db, own, upload_dir, b"x" * 60)
                return True
            except QuotaExceededError:
                return False

    results = await asyncio.gather(attempt(), attempt())

    assert results.count(True) == 1
    async with session_factory() as db:
        final = await links.get_upload_link_by_id(db, link_id)
        assert final.remaining_quota == 40
        assert await uploads.count_file_uploads(db) == 1
    assert len(stored_files(upload_dir)) == 1


class TestQueriesAndDeletion:
    async def test_grouped_listing(self, db, upload_dir):
        first = await links.create_upload_link(db, "first", 100)
        second = await links.create_upload_link(db, "second", 100)
        first.created_at = utcnow() - timedelta(days=1)
        await db.commit()

        older = await upload(db, first, upload_dir, b"1")
        older.uploaded_at = utcnow() - timedelta(hours=1)
        await db.commit()
        newer = await upload(db, first, upload_dir, b"2")
        await upload(db, second, upload_dir, b"3")

        groups = await uploads.list_uploads_grouped(db)
        assert [g[0].name for g in groups] == ["second", "first"]
        assert [u.id for u in groups[1][1]] == [newer.id, older.id]
        assert await uploads.total_uploaded_bytes(db) == 3
        assert [u.id for u in await uploads.list_uploads_for_link(db, first.id)] == [newer.id, older.id]

    async def test_delete_removes_file_and_row(self, db, upload_dir):
        link = await links.create_upload_link(db, "q", 100)
        record = await upload(db, link, upload_dir, b"x" * 5)
        path = record.file_path(upload_dir)

        await uploads.delete_file_upload(db, record.id, upload_dir)

        assert not path.exists()
        assert not path.parent.exists()
        assert await uploads.get_file_upload_by_id(db, record.id) is None
        await db.refresh(link)
        assert link.remaining_quota == 95

    async def test_delete_when_file_already_gone(self, db, upload_dir):
        link = await links.create_upload_link(db, "q", 100)
        record = await upload(db, link, upload_dir, b"x")
        record.file_path(upload_dir).unlink()

        await uploads.delete_file_upload(db, record.id, upload_dir)
        assert await uploads.get_file_upload_by_id(db, record.id) is None

    async def test_delete_unknown_upload(self, db, upload_dir):
        with pytest.raises(NotFoundError):
            await uploads.delete_file_upload(db, "nope", upload_dir)

    async def test_link_deletable_after_its_uploads_are_gone(self, db, upload_dir):
        link = await links.create_upload_link(db, "q", 100)
        record = await upload(db, link, upload_dir, b"x")
        with pytest.raises(ValidationError):
            await links.delete_upload_link(db, link.id)
        await uploads.delete_file_upload(db, record.id, upload_dir)
        await links.delete_upload_link(db, link.id)
        assert await links.get_upload_link_by_id(db, link.id) is None
