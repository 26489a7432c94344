import anyio
import pytest

from filedrop.services.sessions import ReadWriteLock, Session, SessionStore

pytestmark = pytest.mark.anyio


async def test_create_and_get_session():
    store = SessionStore()
    sid = await store.create("admin-1", "admin")
    assert await store.get(sid) == Session(admin_id="admin-1", username="admin")


async def test_tokens_are_unique_and_opaque():
    store = SessionStore()
    a = await store.create("admin-1", "admin")
    b = await store.create("admin-1", "admin")
    assert a != b
    assert "admin" not in a
    assert len(a) >= 32


async def test_unknown_or_missing_token_is_none():
    store = SessionStore()
    assert await store.get("nope") is None
    assert await store.get(None) is None
    assert await store.get("") is None


async def test_remove_session():
    store = SessionStore()
    sid = await store.create("admin-1", "admin")
    assert await store.remove(sid) is True
    assert await store.get(sid) is None
    assert await store.remove(sid) is False
    assert await store.count() == 0


async def test_readers_share_the_lock():
    lock = ReadWriteLock()
    inside = 0
    peak = 0

    async def reader():
        nonlocal inside, peak
        async with lock.read():
            inside += 1
            peak = max(peak, inside)
            await anyio.sleep(0.01)
            inside -= 1

    async with anyio.create_task_group() as tg:
        for _ in range(5):
            tg.start_soon(reader)

    assert peak > 1


async def test_writer_excludes_readers():
    lock = ReadWriteLock()
    events = []

    async def writer():
        async with lock.write():
            events.append("w-start")
            await anyio.sleep(0.02)
            events.append("w-end")

    async def reader():
        await anyio.sleep(0.005)
        async with lock.read():
            events.append("r")

    async with anyio.create_task_group() as tg:
        tg.start_soon(writer)
        tg.start_soon(reader)

    assert events == ["w-start", "w-end", "r"]
