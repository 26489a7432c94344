from fastapi import Depends, Request

from filedrop.core.config import Settings
from filedrop.core.errors import AuthRequiredError
from filedrop.services.sessions import SESSION_COOKIE, Session, SessionStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.sessions


async def get_current_admin(
    request: Request,
    sessions: SessionStore = Depends(get_session_store),
) -> Session:
    """Gate for every admin route: a known ``session_id`` cookie or a redirect to /login."""
    session = await sessions.get(request.cookies.get(SESSION_COOKIE))
    if session is None:
        raise AuthRequiredError()
    request.state.admin = session
    return session
