"""
FastAPI main application for the Book Directory API.
"""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from book_api.config import APIConfig, get_config
from book_api.database import DatabaseManager
from book_api.dependencies import (
    get_api_config, get_auth_service, get_book_service,
    get_current_session, get_session_manager, get_session_token,
)
from book_api.errors import BookDirectoryError
from book_api.models import (
    BookCreatedResponse, BookRequest, BookResponse, BookWithOwnerResponse,
    ErrorResponse, HealthResponse, LoginResponse, MessageResponse,
    RegisterResponse, UserLoginRequest, UserRegisterRequest, UserResponse,
)
from book_api.services import AuthService, BookService
from book_api.sessions import Session, SessionManager
from utilities.logger import bind_request_context, clear_request_context, setup_logging

logger = structlog.get_logger(__name__)


def init_components(app: FastAPI, config: APIConfig, database: DatabaseManager) -> None:
    """Build the stores and services and attach them to ``app.state``."""
    session_manager = SessionManager(
        database.session_store(),
        secret=config.session_secret,
        ttl_seconds=config.session_ttl_seconds,
    )
    users = database.user_store()
    app.state.database = database
    app.state.session_manager = session_manager
    app.state.auth_service = AuthService(users, session_manager, bcrypt_rounds=config.bcrypt_rounds)
    app.state.book_service = BookService(database.book_store(), users)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    config: APIConfig = app.state.config
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug,
    )
    logger.info("Starting Book Directory API", version=config.api_version)

    database = DatabaseManager(config.mongodb_url, config.mongodb_database)
    try:
        await database.connect()
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise
    init_components(app, config, database)

    yield

    logger.info("Shutting down Book Directory API")
    await database.disconnect()


def error_response(status_code: int, message: str, detail=None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, detail=detail).model_dump(exclude_none=True),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map errors onto status codes and the ``{message}`` envelope."""

    @app.exception_handler(BookDirectoryError)
    async def book_directory_error_handler(request: Request, exc: BookDirectoryError):
        logger.info(
            "Request failed",
            error_type=type(exc).__name__,
            message=exc.message,
            path=request.url.path,
        )
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = "Not found" if exc.status_code == status.HTTP_404_NOT_FOUND else str(exc.detail)
        return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        # Submitted values are left out, they may contain passwords
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in exc.errors()
        ]
        return error_response(422, "Invalid request", detail=errors)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception", error=str(exc), path=request.url.path, exc_info=exc)
        config: APIConfig = request.app.state.config
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            detail=str(exc) if config.debug else None,
        )


router = APIRouter(prefix="/api")


# Users endpoints
@router.post(
    "/users/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Users"],
)
async def register_user(
    body: UserRegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Register a new user. The password is stored as a bcrypt hash only."""
    user = await auth_service.register(body.full_name, body.email, body.password)
    return RegisterResponse(user=user)


@router.post("/users/login", response_model=LoginResponse, tags=["Users"])
async def login_user(
    body: UserLoginRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    session_manager: SessionManager = Depends(get_session_manager),
    config: APIConfig = Depends(get_api_config),
):
    """Log in and receive the session cookie."""
    session, user = await auth_service.login(body.email, body.password)
    response.set_cookie(
        key=config.session_cookie_name,
        value=session_manager.sign(session.token),
        max_age=config.session_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=config.session_cookie_secure,
    )
    return LoginResponse(user=user)


@router.get("/users/logout", response_model=MessageResponse, tags=["Users"])
async def logout_user(
    response: Response,
    token: Optional[str] = Depends(get_session_token),
    auth_service: AuthService = Depends(get_auth_service),
    config: APIConfig = Depends(get_api_config),
):
    """End the current session. Succeeds whether or not one exists."""
    await auth_service.logout(token)
    response.delete_cookie(config.session_cookie_name)
    return MessageResponse(message="Logout successfully")


@router.get("/users", response_model=List[UserResponse], tags=["Users"])
async def list_users(auth_service: AuthService = Depends(get_auth_service)):
    return await auth_service.list_users()


@router.get("/users/profile/{user_id}", response_model=UserResponse, tags=["Users"])
async def get_profile(
    user_id: str,
    session: Optional[Session] = Depends(get_current_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Profile of the logged-in user; other users' profiles are refused."""
    return await auth_service.get_profile(user_id, session)


@router.get("/users/{user_id}", response_model=UserResponse, tags=["Users"])
async def get_user(user_id: str, auth_service: AuthService = Depends(get_auth_service)):
    return await auth_service.get_user(user_id)


@router.put("/users/{user_id}", response_model=MessageResponse, tags=["Users"])
async def update_user(user_id: str):
    """Profile updates are not supported; the request is acknowledged only."""
    return MessageResponse(message="Update user endpoint")


# Books endpoints
@router.post(
    "/books",
    response_model=BookCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Books"],
)
async def create_book(
    body: BookRequest,
    session: Optional[Session] = Depends(get_current_session),
    book_service: BookService = Depends(get_book_service),
):
    """Create a book owned by the logged-in user."""
    book = await book_service.create_book(session, body)
    return BookCreatedResponse(book=book)


@router.get("/books", response_model=List[BookWithOwnerResponse], tags=["Books"])
async def list_books(book_service: BookService = Depends(get_book_service)):
    """All books, each with its owner in ``createdBy``."""
    return await book_service.list_books()


@router.get("/books/{book_id}", response_model=BookResponse, tags=["Books"])
async def get_book(book_id: str, book_service: BookService = Depends(get_book_service)):
    return await book_service.get_book(book_id)


@router.put("/books/{book_id}", response_model=BookResponse, tags=["Books"])
async def update_book(
    book_id: str,
    body: BookRequest,
    session: Optional[Session] = Depends(get_current_session),
    book_service: BookService = Depends(get_book_service),
):
    """Replace title, author, isbn and desc. Owner only."""
    return await book_service.update_book(session, book_id, body)


@router.delete("/books/{book_id}", response_model=MessageResponse, tags=["Books"])
async def delete_book(
    book_id: str,
    session: Optional[Session] = Depends(get_current_session),
    book_service: BookService = Depends(get_book_service),
):
    """Delete a book. Owner only."""
    await book_service.delete_book(session, book_id)
    return MessageResponse(message="Book deleted")


def create_app(config: APIConfig = None) -> FastAPI:
    """Create the FastAPI application for ``config``."""
    config = config or get_config()

    app = FastAPI(
        title=config.api_title,
        description="""
    REST backend for a book directory.

    ## Authentication

    Log in through `POST /api/users/login`. The response sets a session
    cookie valid for one day; send it back on requests that need a login.
    """,
        version=config.api_version,
        lifespan=lifespan,
    )
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=config.cors_allow_credentials,
        allow_methods=config.cors_allow_methods,
        allow_headers=config.cors_allow_headers,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = bind_request_context(
            request.method, request.url.path, request.headers.get("X-Request-ID")
        )
        start = time.perf_counter()
        try:
            response = await call_next(request)
            logger.info(
                "Request handled",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_request_context()

    register_exception_handlers(app)

    # Health check endpoint (no authentication required)
    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint."""
        database: Optional[DatabaseManager] = getattr(request.app.state, "database", None)
        db_status = "unavailable"
        if database is not None:
            health_info = await database.health_check()
            db_status = health_info.get("status", "unknown")

        return HealthResponse(
            status="healthy" if db_status == "healthy" else "degraded",
            timestamp=datetime.now(timezone.utc),
            version=config.api_version,
            database_status=db_status,
        )

    app.include_router(router)
    return app


app = create_app()

