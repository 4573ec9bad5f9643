"""
Unit tests for the MongoDB stores, with motor collections mocked out.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId

from book_api.database import BookStore, DatabaseManager, SessionStore, UserStore, to_object_id


@pytest.fixture
def mock_database():
    """Database mock exposing users, books and sessions collections."""
    database = MagicMock()
    for name in ("users", "books", "sessions"):
        collection = MagicMock()
        collection.name = name
        collection.find_one = AsyncMock(return_value=None)
        collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id=ObjectId()))
        collection.find_one_and_update = AsyncMock(return_value=None)
        collection.update_one = AsyncMock()
        collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
        setattr(database, name, collection)
    return database


def test_to_object_id():
    object_id = ObjectId()
    assert to_object_id(object_id) is object_id
    assert to_object_id(str(object_id)) == object_id
    assert to_object_id("nope") is None
    assert to_object_id(None) is None


class TestUserStore:
    """Test cases for UserStore."""

    @pytest.mark.asyncio
    async def test_create_stores_digest_and_empty_books(self, mock_database):
        store = UserStore(mock_database)
        user_doc = await store.create("A", "a@x.com", "$2b$10$digest")

        inserted = mock_database.users.insert_one.call_args.args[0]
        assert inserted["password"] == "$2b$10$digest"
        assert inserted["books"] == []
        assert user_doc["_id"] == mock_database.users.insert_one.return_value.inserted_id

    @pytest.mark.asyncio
    async def test_find_by_invalid_id_skips_query(self, mock_database):
        store = UserStore(mock_database)
        assert await store.find_by_id("not-an-id") is None
        mock_database.users.find_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_append_book_pushes_snapshot(self, mock_database):
        store = UserStore(mock_database)
        user_id, book_doc = ObjectId(), {"_id": ObjectId(), "title": "T"}

        await store.append_book(user_id, book_doc)

        query, update = mock_database.users.find_one_and_update.call_args.args
        assert query == {"_id": user_id}
        assert update["$push"] == {"books": book_doc}

    @pytest.mark.asyncio
    async def test_find_by_missing_id_skips_query(self, mock_database):
        store = UserStore(mock_database)
        assert await store.find_by_id(None) is None
        mock_database.users.find_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_replace_book_targets_matching_snapshot(self, mock_database):
        store = UserStore(mock_database)
        user_id = ObjectId()
        book_doc = {"_id": ObjectId(), "title": "T2", "author": "Y", "isbn": "456", "desc": "e"}

        await store.replace_book(user_id, book_doc)

        query, update = mock_database.users.update_one.call_args.args
        assert query == {"_id": user_id, "books._id": book_doc["_id"]}
        assert update["$set"]["books.$"] == book_doc
        assert "updated_at" in update["$set"]

    @pytest.mark.asyncio
    async def test_remove_book_pulls_snapshot(self, mock_database):
        store = UserStore(mock_database)
        user_id, book_id = ObjectId(), ObjectId()

        await store.remove_book(user_id, book_id)

        query, update = mock_database.users.update_one.call_args.args
        assert query == {"_id": user_id}
        assert update["$pull"] == {"books": {"_id": book_id}}


class TestBookStore:
    """Test cases for BookStore."""

    @pytest.mark.asyncio
    async def test_list_with_owners_looks_up_users(self, mock_database):
        cursor = MagicMock()
        cursor.to_list = AsyncMock(return_value=[])
        mock_database.books.aggregate = MagicMock(return_value=cursor)
        store = BookStore(mock_database)

        assert await store.list_with_owners() == []

        pipeline = mock_database.books.aggregate.call_args.args[0]
        lookup = next(stage["$lookup"] for stage in pipeline if "$lookup" in stage)
        assert lookup["from"] == "users"
        assert lookup["localField"] == "created_by"
        project = next(stage["$project"] for stage in pipeline if "$project" in stage)
        assert project["owner.password"] == 0

    @pytest.mark.asyncio
    async def test_delete_reports_missing(self, mock_database):
        mock_database.books.delete_one.return_value = MagicMock(deleted_count=0)
        store = BookStore(mock_database)
        assert await store.delete(ObjectId()) is False


class TestSessionStore:
    """Test cases for SessionStore."""

    @pytest.mark.asyncio
    async def test_sessions_keyed_by_token(self, mock_database):
        store = SessionStore(mock_database)
        await store.find("token-1")
        await store.delete("token-1")

        mock_database.sessions.find_one.assert_awaited_once_with({"_id": "token-1"})
        mock_database.sessions.delete_one.assert_awaited_once_with({"_id": "token-1"})


class TestDatabaseManager:
    """Test cases for DatabaseManager."""

    @pytest.mark.asyncio
    async def test_health_check_healthy(self, mock_database):
        manager = DatabaseManager("mongodb://localhost:27017", "test")
        manager.database = mock_database
        mock_database.command = AsyncMock(return_value={"ok": 1})
        mock_database.users.count_documents = AsyncMock(return_value=2)
        mock_database.books.count_documents = AsyncMock(return_value=3)

        result = await manager.health_check()
        assert result == {"status": "healthy", "users_count": 2, "books_count": 3}

    @pytest.mark.asyncio
    async def test_health_check_unhealthy(self, mock_database):
        manager = DatabaseManager("mongodb://localhost:27017", "test")
        manager.database = mock_database
        mock_database.command = AsyncMock(side_effect=Exception("connection refused"))

        result = await manager.health_check()
        assert result["status"] == "unhealthy"
        assert "connection refused" in result["error"]

    @pytest.mark.asyncio
    async def test_session_ttl_index(self, mock_database):
        manager = DatabaseManager("mongodb://localhost:27017", "test")
        manager.database = mock_database
        for name in ("users", "books", "sessions"):
            getattr(mock_database, name).create_index = AsyncMock()

        await manager._create_indexes()

        mock_database.sessions.create_index.assert_awaited_once_with("expires_at", expireAfterSeconds=0)
