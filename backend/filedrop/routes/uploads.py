from __future__ import annotations

import urllib.parse

import anyio
from fastapi import APIRouter, Depends, status
from fastapi.responses import FileResponse, HTMLResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.core.config import Settings
from filedrop.core.database import get_db
from filedrop.core.errors import NotFoundError
from filedrop.dependencies.auth import get_current_admin, get_settings
from filedrop.services.sessions import Session
from filedrop.services.uploads import delete_file_upload, get_file_upload_by_id, list_uploads_grouped
from filedrop.ui import pages

router = APIRouter(prefix="/admin/uploads", tags=["Uploads"])


def content_disposition(filename: str) -> str:
    # plain ASCII fallback for old clients plus the exact name per RFC 5987
    fallback = "".join(
        c if 32 <= ord(c) < 127 and c not in '"\\' else "_" for c in filename
    ) or "download.bin"
    quoted = urllib.parse.quote(filename, safe="")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quoted}"


@router.get("", response_class=HTMLResponse)
async def admin_uploads(
    db: AsyncSession = Depends(get_db),
    admin: Session = Depends(get_current_admin),
):
    groups = await list_uploads_grouped(db)
    return HTMLResponse(pages.uploads_page(admin.username, groups))


@router.get("/{upload_id}/download")
async def download_file(
    upload_id: str,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    admin: Session = Depends(get_current_admin),
):
    upload = await get_file_upload_by_id(db, upload_id)
    if upload is None:
        return HTMLResponse(pages.error_page(404, "Upload not found"), status_code=404)

    path = upload.file_path(settings.UPLOAD_DIR)
    if not await anyio.Path(path).is_file():
        return HTMLResponse(pages.error_page(404, "File not found on disk"), status_code=404)

    return FileResponse(
        path,
        media_type=upload.mime_type,
        headers={"Content-Disposition": content_disposition(upload.original_filename)},
    )


@router.post("/{upload_id}/delete")
async def delete_upload(
    upload_id: str,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    admin: Session = Depends(get_current_admin),
):
    try:
        await delete_file_upload(db, upload_id, settings.UPLOAD_DIR)
    except NotFoundError as e:
        return HTMLResponse(pages.error_page(e.status_code, e.message), status_code=e.status_code)
    return RedirectResponse("/admin/uploads", status_code=status.HTTP_303_SEE_OTHER)
