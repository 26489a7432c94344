from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.core.config import Settings
from filedrop.core.database import get_db
from filedrop.core.errors import FileDropError, LinkUnavailableError, NotFoundError
from filedrop.dependencies.auth import get_settings
from filedrop.services.links import get_upload_link_by_token
from filedrop.services.uploads import accept_upload, get_valid_link
from filedrop.ui import pages

logger = logging.getLogger("filedrop")

router = APIRouter(tags=["Guest"])


@router.get("/", response_class=HTMLResponse)
async def index():
    return HTMLResponse(pages.index_page())


@router.get("/upload/{token}", response_class=HTMLResponse)
async def upload_form(token: str, db: AsyncSession = Depends(get_db)):
    try:
        link = await get_valid_link(db, token)
    except (NotFoundError, LinkUnavailableError) as e:
        return HTMLResponse(pages.error_page(e.status_code, e.message), status_code=e.status_code)
    return HTMLResponse(pages.upload_page(token, link), headers={"Cache-Control": "no-store"})


@router.post("/upload/{token}", response_class=HTMLResponse)
async def handle_upload(
    token: str,
    file: UploadFile | None = File(None),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    logger.info("File upload initiated token=%s", token)

    link = await get_upload_link_by_token(db, token)
    if link is None:
        logger.warning("Upload attempted with non-existent link token=%s", token)
        return HTMLResponse(pages.error_page(404, "Upload link not found"), status_code=404)
    if not link.is_valid():
        logger.warning("Upload attempted with expired or inactive link token=%s", token)
        err = LinkUnavailableError()
        return HTMLResponse(pages.upload_page(token, link, error=err.message), status_code=err.status_code)

    if file is None or not file.filename:
        return HTMLResponse(pages.upload_page(token, link, error="No file was uploaded"), status_code=400)

    try:
        await accept_upload(
            db,
            link,
            settings.UPLOAD_DIR,
            filename=file.filename,
            content_type=file.content_type,
            read=file.read,
            declared_size=file.size,
        )
    except FileDropError as e:
        return HTMLResponse(pages.upload_page(token, link, error=e.message), status_code=e.status_code)
    finally:
        await file.close()

    return HTMLResponse(pages.upload_page(token, link, success="File uploaded successfully!"))
