"""
Business rules for authentication and book ownership.
"""

from typing import List, Optional, Tuple

import structlog

from book_api.database import BookStore, UserStore, to_object_id
from book_api.errors import AlreadyExists, InvalidCredentials, NotFound, Unauthorized
from book_api.models import (
    BookRequest, BookResponse, BookWithOwnerResponse, UserResponse,
)
from book_api.security import DEFAULT_ROUNDS, hash_password, verify_password
from book_api.sessions import Session, SessionManager

logger = structlog.get_logger(__name__)


def require_session(session: Optional[Session], message: str = None) -> Session:
    """Raise Unauthorized unless a live session is present."""
    if session is None:
        raise Unauthorized(message)
    return session


class AuthService:
    """Registration, login, logout and user lookups."""

    def __init__(self, users: UserStore, sessions: SessionManager, bcrypt_rounds: int = DEFAULT_ROUNDS):
        self.users = users
        self.sessions = sessions
        self.bcrypt_rounds = bcrypt_rounds

    async def register(self, full_name: str, email: str, password: str) -> UserResponse:
        """
        Create a user account.

        Raises:
            AlreadyExists: If a user with the same email is registered
        """
        if await self.users.find_by_email(email):
            logger.info("Registration rejected, email in use", email=email)
            raise AlreadyExists("User already exists")

        password_hash = hash_password(password, rounds=self.bcrypt_rounds)
        user_doc = await self.users.create(full_name, email, password_hash)

        logger.info("User registered", user_id=str(user_doc["_id"]), email=email)
        return UserResponse.from_document(user_doc)

    async def login(self, email: str, password: str) -> Tuple[Session, UserResponse]:
        """
        Check credentials and open a session.

        Raises:
            NotFound: If no user has this email
            InvalidCredentials: If the password does not match
        """
        user_doc = await self.users.find_by_email(email)
        if not user_doc:
            raise NotFound("User email does not exist")

        if not verify_password(password, user_doc["password"]):
            logger.info("Login rejected, bad password", user_id=str(user_doc["_id"]))
            raise InvalidCredentials()

        session = await self.sessions.create(user_doc["_id"])
        logger.info("User logged in", user_id=str(user_doc["_id"]))
        return session, UserResponse.from_document(user_doc)

    async def logout(self, token: Optional[str]) -> None:
        await self.sessions.destroy(token)

    async def list_users(self) -> List[UserResponse]:
        return [UserResponse.from_document(doc) for doc in await self.users.list_all()]

    async def get_user(self, user_id: str) -> UserResponse:
        user_doc = await self.users.find_by_id(user_id)
        if not user_doc:
            raise NotFound(f"User with ID '{user_id}' not found")
        return UserResponse.from_document(user_doc)

    async def get_profile(self, user_id: str, session: Optional[Session]) -> UserResponse:
        """
        Profile of the logged-in user.

        Raises:
            Unauthorized: If there is no session or it belongs to another user
            NotFound: If the user no longer exists
        """
        session = require_session(session)
        if to_object_id(user_id) != session.user_id:
            logger.warning(
                "Profile access denied",
                requested_user_id=user_id,
                session_user_id=str(session.user_id),
            )
            raise Unauthorized("You can only view your own profile")
        return await self.get_user(user_id)


class BookService:
    """Book CRUD with the owner's embedded book list kept alongside."""

    def __init__(self, books: BookStore, users: UserStore):
        self.books = books
        self.users = users

    async def create_book(self, session: Optional[Session], fields: BookRequest) -> BookResponse:
        """
        Create a book owned by the session user.

        The book insert and the snapshot push onto the owner are two separate
        writes; a failure between them leaves the snapshot missing.

        Raises:
            Unauthorized: If there is no session
            AlreadyExists: If a book with the same title exists
        """
        session = require_session(session, "Please login before creating a book")

        if await self.books.find_by_title(fields.title):
            raise AlreadyExists(f"This book with the title {fields.title} exists")

        book_doc = await self.books.create(
            title=fields.title,
            author=fields.author,
            isbn=fields.isbn,
            desc=fields.desc,
            created_by=session.user_id,
        )
        await self.users.append_book(session.user_id, book_doc)

        logger.info("Book created", book_id=str(book_doc["_id"]), user_id=str(session.user_id))
        return BookResponse.from_document(book_doc)

    async def list_books(self) -> List[BookWithOwnerResponse]:
        return [BookWithOwnerResponse.from_document(doc) for doc in await self.books.list_with_owners()]

    async def get_book(self, book_id: str) -> BookResponse:
        return BookResponse.from_document(await self._find_book(book_id))

    async def update_book(self, session: Optional[Session], book_id: str, fields: BookRequest) -> BookResponse:
        """
        Replace every editable field of a book owned by the session user.

        Raises:
            Unauthorized: If there is no session or the user is not the owner
            NotFound: If the book does not exist
        """
        session = require_session(session)
        book_doc = await self._find_book(book_id)
        self._check_owner(session, book_doc)

        updated = await self.books.replace_fields(book_doc["_id"], fields.model_dump())
        if updated is None:
            raise NotFound(f"Book with ID '{book_id}' not found")
        await self.users.replace_book(updated["created_by"], updated)

        logger.info("Book updated", book_id=book_id, user_id=str(session.user_id))
        return BookResponse.from_document(updated)

    async def delete_book(self, session: Optional[Session], book_id: str) -> None:
        """
        Delete a book owned by the session user.

        Raises:
            Unauthorized: If there is no session or the user is not the owner
            NotFound: If the book does not exist
        """
        session = require_session(session)
        book_doc = await self._find_book(book_id)
        self._check_owner(session, book_doc)

        if not await self.books.delete(book_doc["_id"]):
            raise NotFound(f"Book with ID '{book_id}' not found")
        await self.users.remove_book(book_doc["created_by"], book_doc["_id"])

        logger.info("Book deleted", book_id=book_id, user_id=str(session.user_id))

    async def _find_book(self, book_id: str) -> dict:
        book_doc = await self.books.find_by_id(book_id)
        if not book_doc:
            raise NotFound(f"Book with ID '{book_id}' not found")
        return book_doc

    @staticmethod
    def _check_owner(session: Session, book_doc: dict) -> None:
        if book_doc["created_by"] != session.user_id:
            logger.warning(
                "Book access denied",
                book_id=str(book_doc["_id"]),
                owner_id=str(book_doc["created_by"]),
                session_user_id=str(session.user_id),
            )
            raise Unauthorized("Only the owner can modify this book")
