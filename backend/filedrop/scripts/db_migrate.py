"""Bring the database schema up to date with Alembic.

Databases created by the application's own ``create_all`` at startup have the
tables but no ``alembic_version`` row; those are stamped at head first.
"""

import logging
import subprocess
import sys
from pathlib import Path

from sqlalchemy import create_engine, inspect

from filedrop.core.config import settings

logger = logging.getLogger("filedrop")

BACKEND_DIR = Path(__file__).resolve().parents[2]
CORE_TABLES = ("admins", "upload_links", "file_uploads")


def sync_database_url(url: str) -> str:
    return url.replace("+aiosqlite", "")


def alembic(*args: str) -> None:
    subprocess.run(["alembic", *args], check=True, cwd=BACKEND_DIR)


def main():
    engine = create_engine(sync_database_url(settings.DATABASE_URL))
    try:
        insp = inspect(engine)
        has_alembic = insp.has_table("alembic_version")
        existing_core_tables = any(insp.has_table(t) for t in CORE_TABLES)
    finally:
        engine.dispose()

    if existing_core_tables and not has_alembic:
        logger.info("Existing tables detected without alembic_version, stamping head")
        alembic("stamp", "head")
    else:
        logger.info("has_alembic=%s existing_core_tables=%s", has_alembic, existing_core_tables)

    alembic("upgrade", "head")


def cli():
    logging.basicConfig(level=logging.INFO, format="[db-migrate] %(message)s")
    try:
        main()
    except subprocess.CalledProcessError as e:
        logger.error("Alembic command failed: %s", e)
        sys.exit(e.returncode)


if __name__ == "__main__":
    cli()
