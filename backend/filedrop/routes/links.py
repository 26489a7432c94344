import logging

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError as FormValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.core.config import Settings
from filedrop.core.database import get_db
from filedrop.core.errors import NotFoundError, ValidationError
from filedrop.dependencies.auth import get_current_admin, get_settings
from filedrop.schemas.link import CreateLinkForm
from filedrop.services import links as link_service
from filedrop.services.sessions import Session
from filedrop.ui import pages
from filedrop.utils.urls import external_base_url

logger = logging.getLogger("filedrop")

router = APIRouter(prefix="/admin/links", tags=["Upload Links"])

INVALID_FORM = "Invalid form data. Please check that the expiration time is a valid number."


async def _render_links(request: Request, db: AsyncSession, settings: Settings, username: str,
                        error: str | None = None, status_code: int = 200) -> HTMLResponse:
    links = await link_service.list_upload_links(db)
    base_url = external_base_url(request, settings.PUBLIC_BASE_URL)
    return HTMLResponse(pages.links_page(username, links, base_url, error=error), status_code=status_code)


@router.get("", response_class=HTMLResponse)
async def admin_links(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    admin: Session = Depends(get_current_admin),
):
    return await _render_links(request, db, settings, admin.username)


@router.get("/create", response_class=HTMLResponse)
async def create_link_form(admin: Session = Depends(get_current_admin)):
    return HTMLResponse(pages.create_link_page(admin.username))


@router.post("/create", response_class=HTMLResponse)
async def handle_create_link(
    name: str = Form(""),
    max_file_size_mb: str = Form(""),
    expires_in_hours: str = Form(""),
    db: AsyncSession = Depends(get_db),
    admin: Session = Depends(get_current_admin),
):
    submitted = {"name": name, "max_file_size_mb": max_file_size_mb, "expires_in_hours": expires_in_hours}
    try:
        form = CreateLinkForm(**submitted)
    except FormValidationError:
        return HTMLResponse(
            pages.create_link_page(admin.username, error=INVALID_FORM, form=submitted),
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    try:
        await link_service.create_upload_link(db, form.name, form.max_file_size, form.expires_at())
    except ValidationError as e:
        return HTMLResponse(
            pages.create_link_page(admin.username, error=e.message, form=submitted),
            status_code=e.status_code,
        )
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Failed to create upload link name=%r: %s", form.name, e)
        return HTMLResponse(
            pages.create_link_page(admin.username, error="Failed to create upload link", form=submitted),
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return RedirectResponse("/admin/links", status_code=status.HTTP_303_SEE_OTHER)


@router.post("/{link_id}/delete")
async def delete_link(
    link_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    admin: Session = Depends(get_current_admin),
):
    try:
        await link_service.delete_upload_link(db, link_id)
    except (NotFoundError, ValidationError) as e:
        return await _render_links(request, db, settings, admin.username,
                                   error=e.message, status_code=e.status_code)
    return RedirectResponse("/admin/links", status_code=status.HTTP_303_SEE_OTHER)


@router.post("/{link_id}/toggle")
async def toggle_link(
    link_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    admin: Session = Depends(get_current_admin),
):
    link = await link_service.get_upload_link_by_id(db, link_id)
    if link is None:
        return await _render_links(request, db, settings, admin.username,
                                   error="Upload link not found", status_code=status.HTTP_404_NOT_FOUND)
    await link_service.set_link_active(db, link_id, not link.is_active)
    return RedirectResponse("/admin/links", status_code=status.HTTP_303_SEE_OTHER)
