from fastapi import APIRouter, Depends, Form
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.core.config import Settings
from filedrop.core.database import get_db
from filedrop.core.errors import FileDropError
from filedrop.dependencies.auth import get_current_admin, get_settings
from filedrop.services.admins import change_password
from filedrop.services.links import count_valid_links
from filedrop.services.sessions import Session
from filedrop.services.uploads import count_file_uploads, total_uploaded_bytes
from filedrop.ui import pages

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
)


@router.get("", response_class=HTMLResponse)
@router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def admin_dashboard(
    db: AsyncSession = Depends(get_db),
    admin: Session = Depends(get_current_admin),
):
    return HTMLResponse(pages.dashboard_page(
        admin.username,
        active_links=await count_valid_links(db),
        total_uploads=await count_file_uploads(db),
        total_bytes=await total_uploaded_bytes(db),
    ))


@router.get("/change-password", response_class=HTMLResponse)
async def change_password_form(admin: Session = Depends(get_current_admin)):
    return HTMLResponse(pages.change_password_page(admin.username))


@router.post("/change-password", response_class=HTMLResponse)
async def handle_change_password(
    current_password: str = Form(""),
    new_password: str = Form(""),
    confirm_password: str = Form(""),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    admin: Session = Depends(get_current_admin),
):
    try:
        await change_password(
            db, admin.username, current_password, new_password, confirm_password, settings
        )
    except FileDropError as e:
        return HTMLResponse(
            pages.change_password_page(admin.username, error=e.message),
            status_code=e.status_code,
        )
    return HTMLResponse(
        pages.change_password_page(admin.username, success="Password changed successfully!")
    )
