"""
Dependency providers for FastAPI routes.

Components are built once in the application lifespan and kept on
``app.state``; these providers hand them to the routes.
"""

from typing import Optional

from fastapi import Depends, Request

from book_api.config import APIConfig
from book_api.services import AuthService, BookService
from book_api.sessions import Session, SessionManager


def get_api_config(request: Request) -> APIConfig:
    return request.app.state.config


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_book_service(request: Request) -> BookService:
    return request.app.state.book_service


def get_session_token(
    request: Request,
    config: APIConfig = Depends(get_api_config),
    session_manager: SessionManager = Depends(get_session_manager),
) -> Optional[str]:
    """Token from the signed session cookie, if any."""
    return session_manager.unsign(request.cookies.get(config.session_cookie_name))


async def get_current_session(
    token: Optional[str] = Depends(get_session_token),
    session_manager: SessionManager = Depends(get_session_manager),
) -> Optional[Session]:
    """The caller's live session, or None when not logged in."""
    return await session_manager.resolve(token)
