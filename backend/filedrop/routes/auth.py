import logging

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.core.database import get_db
from filedrop.dependencies.auth import get_session_store
from filedrop.services.admins import authenticate
from filedrop.services.sessions import SESSION_COOKIE, SessionStore
from filedrop.ui import pages

logger = logging.getLogger("filedrop")

router = APIRouter(tags=["Auth"])


def session_cookie(session_id: str) -> str:
    return f"{SESSION_COOKIE}={session_id}; Path=/; HttpOnly; SameSite=Strict"


def cleared_session_cookie() -> str:
    return f"{SESSION_COOKIE}=; Path=/; HttpOnly; SameSite=Strict; Max-Age=0"


@router.get("/login", response_class=HTMLResponse)
async def login_form():
    return HTMLResponse(pages.login_page())


@router.post("/login", response_class=HTMLResponse)
async def login(
    username: str = Form(""),
    password: str = Form(""),
    db: AsyncSession = Depends(get_db),
    sessions: SessionStore = Depends(get_session_store),
):
    logger.info("Login attempt username=%s", username)
    admin = await authenticate(db, username, password)
    if admin is None:
        return HTMLResponse(
            pages.login_page(error="Invalid username or password"),
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    session_id = await sessions.create(admin.id, admin.username)
    logger.info("Admin logged in admin_id=%s username=%s", admin.id, admin.username)
    response = RedirectResponse("/admin", status_code=status.HTTP_303_SEE_OTHER)
    response.headers.append("set-cookie", session_cookie(session_id))
    return response


@router.post("/logout")
async def logout(request: Request, sessions: SessionStore = Depends(get_session_store)):
    if await sessions.remove(request.cookies.get(SESSION_COOKIE)):
        logger.info("Admin logged out")
    response = RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)
    response.headers.append("set-cookie", cleared_session_cookie())
    return response
