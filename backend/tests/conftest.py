import pytest
from starlette.testclient import TestClient

from filedrop.core.config import Settings
from filedrop.core.database import create_engine, create_session_factory, init_models
from filedrop.main import create_app

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "initial-pass"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'filedrop.db'}",
        UPLOAD_DIR=str(tmp_path / "uploads"),
        ADMIN_USERNAME=ADMIN_USERNAME,
        ADMIN_PASSWORD=ADMIN_PASSWORD,
        BCRYPT_ROUNDS=4,
        METRICS_ENABLED=False,
        PUBLIC_BASE_URL="http://drop.test",
    )


@pytest.fixture
def upload_dir(settings):
    return settings.UPLOAD_DIR


@pytest.fixture
async def engine(anyio_backend, settings):
    eng = create_engine(settings.DATABASE_URL)
    await init_models(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app, follow_redirects=False) as c:
        yield c


def login(client, username=ADMIN_USERNAME, password=ADMIN_PASSWORD):
    resp = client.post("/login", data={"username": username, "password": password})
    assert resp.status_code == 303, resp.text
    return resp


def run_db(client, fn, *args):
    """Run ``fn(db, *args)`` on the app's own event loop and database."""
    async def _call():
        async with client.app.state.session_factory() as session:
            return await fn(session, *args)

    return client.portal.call(_call)


def reader(data: bytes):
    pos = 0

    async def read(size: int = -1) -> bytes:
        nonlocal pos
        if size < 0:
            size = len(data) - pos
        chunk = data[pos:pos + size]
        pos += len(chunk)
        return chunk

    return read
