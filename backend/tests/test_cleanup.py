import os
import time

import pytest

from filedrop.services import links, uploads
from filedrop.tasks.cleanup import sweep_orphans

from .conftest import reader

pytestmark = pytest.mark.anyio


def make_folder(upload_dir, name, age_seconds):
    folder = os.path.join(upload_dir, name)
    os.makedirs(folder)
    with open(os.path.join(folder, "leftover.bin"), "wb") as f:
        f.write(b"x")
    stamp = time.time() - age_seconds
    os.utime(folder, (stamp, stamp))
    return folder


async def test_removes_only_old_unreferenced_folders(db, session_factory, upload_dir):
    link = await links.create_upload_link(db, "kept", 100)
    record = await uploads.accept_upload(db, link, upload_dir, "a.txt", "text/plain", reader(b"abc"))
    referenced = os.path.join(upload_dir, record.guest_folder)
    stamp = time.time() - 7200
    os.utime(referenced, (stamp, stamp))

    orphan = make_folder(upload_dir, "orphan-old", 7200)
    fresh = make_folder(upload_dir, "orphan-fresh", 10)

    removed = await sweep_orphans(session_factory, upload_dir, min_age_seconds=3600)

    assert removed == 1
    assert not os.path.exists(orphan)
    assert os.path.isdir(fresh)
    assert os.path.isfile(os.path.join(referenced, record.stored_filename))


async def test_nothing_to_do(session_factory, upload_dir):
    assert await sweep_orphans(session_factory, upload_dir, min_age_seconds=0) == 0
