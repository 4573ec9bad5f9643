"""
Pytest configuration and shared fixtures.
"""

import copy
from typing import Dict, List, Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from book_api.config import APIConfig
from book_api.database import to_object_id, utcnow
from book_api.main import create_app
from book_api.services import AuthService, BookService
from book_api.sessions import SessionManager


class InMemoryUserStore:
    """UserStore stand-in keeping documents in a dict."""

    def __init__(self):
        self.docs: Dict[ObjectId, Dict] = {}

    async def find_by_email(self, email: str) -> Optional[Dict]:
        for doc in self.docs.values():
            if doc["email"] == email:
                return copy.deepcopy(doc)
        return None

    async def find_by_id(self, user_id) -> Optional[Dict]:
        doc = self.docs.get(to_object_id(user_id))
        return copy.deepcopy(doc) if doc else None

    async def list_all(self) -> List[Dict]:
        return [copy.deepcopy(doc) for doc in self.docs.values()]

    async def create(self, full_name: str, email: str, password_hash: str) -> Dict:
        now = utcnow()
        doc = {
            "_id": ObjectId(),
            "full_name": full_name,
            "email": email,
            "password": password_hash,
            "books": [],
            "created_at": now,
            "updated_at": now,
        }
        self.docs[doc["_id"]] = doc
        return copy.deepcopy(doc)

    async def append_book(self, user_id: ObjectId, book_doc: Dict) -> Optional[Dict]:
        doc = self.docs.get(user_id)
        if doc is None:
            return None
        doc["books"].append(copy.deepcopy(book_doc))
        return copy.deepcopy(doc)

    async def replace_book(self, user_id: ObjectId, book_doc: Dict) -> None:
        doc = self.docs.get(user_id)
        if doc is None:
            return
        doc["books"] = [
            copy.deepcopy(book_doc) if b["_id"] == book_doc["_id"] else b
            for b in doc["books"]
        ]

    async def remove_book(self, user_id: ObjectId, book_id: ObjectId) -> None:
        doc = self.docs.get(user_id)
        if doc is None:
            return
        doc["books"] = [b for b in doc["books"] if b["_id"] != book_id]


class InMemoryBookStore:
    """BookStore stand-in; joins owners from an InMemoryUserStore."""

    def __init__(self, users: InMemoryUserStore):
        self.users = users
        self.docs: Dict[ObjectId, Dict] = {}

    async def find_by_title(self, title: str) -> Optional[Dict]:
        for doc in self.docs.values():
            if doc["title"] == title:
                return copy.deepcopy(doc)
        return None

    async def find_by_id(self, book_id) -> Optional[Dict]:
        doc = self.docs.get(to_object_id(book_id))
        return copy.deepcopy(doc) if doc else None

    async def list_with_owners(self) -> List[Dict]:
        result = []
        for doc in self.docs.values():
            joined = copy.deepcopy(doc)
            owner = self.users.docs.get(doc["created_by"])
            if owner is not None:
                joined["owner"] = {
                    k: v for k, v in copy.deepcopy(owner).items() if k not in ("password", "books")
                }
            result.append(joined)
        return result

    async def create(self, title, author, isbn, desc, created_by) -> Dict:
        now = utcnow()
        doc = {
            "_id": ObjectId(),
            "title": title,
            "author": author,
            "isbn": isbn,
            "desc": desc,
            "created_by": created_by,
            "created_at": now,
            "updated_at": now,
        }
        self.docs[doc["_id"]] = doc
        return copy.deepcopy(doc)

    async def replace_fields(self, book_id: ObjectId, fields: Dict) -> Optional[Dict]:
        doc = self.docs.get(book_id)
        if doc is None:
            return None
        doc.update(fields)
        doc["updated_at"] = utcnow()
        return copy.deepcopy(doc)

    async def delete(self, book_id: ObjectId) -> bool:
        return self.docs.pop(book_id, None) is not None


class InMemorySessionStore:
    """SessionStore stand-in keyed by token."""

    def __init__(self):
        self.docs: Dict[str, Dict] = {}

    async def insert(self, session_doc: Dict) -> None:
        self.docs[session_doc["_id"]] = dict(session_doc)

    async def find(self, token: str) -> Optional[Dict]:
        doc = self.docs.get(token)
        return dict(doc) if doc else None

    async def delete(self, token: str) -> None:
        self.docs.pop(token, None)


@pytest.fixture
def api_config():
    """Configuration with a known secret and the cheapest bcrypt cost."""
    return APIConfig(SESSION_SECRET="test-session-secret", bcrypt_rounds=4, log_format="console")


@pytest.fixture
def user_store():
    return InMemoryUserStore()


@pytest.fixture
def book_store(user_store):
    return InMemoryBookStore(user_store)


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def session_manager(session_store, api_config):
    return SessionManager(
        session_store,
        secret=api_config.session_secret,
        ttl_seconds=api_config.session_ttl_seconds,
    )


@pytest.fixture
def auth_service(user_store, session_manager, api_config):
    return AuthService(user_store, session_manager, bcrypt_rounds=api_config.bcrypt_rounds)


@pytest.fixture
def book_service(book_store, user_store):
    return BookService(book_store, user_store)


@pytest.fixture
def app(api_config, session_manager, auth_service, book_service):
    """Application wired to the in-memory stores; the lifespan is not run."""
    application = create_app(api_config)
    application.state.session_manager = session_manager
    application.state.auth_service = auth_service
    application.state.book_service = book_service
    return application


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def sample_book():
    """Body for creating a book."""
    return {"title": "T", "author": "X", "isbn": "123", "desc": "d"}
