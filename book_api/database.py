"""
MongoDB access layer for the Book Directory API.

Three collections back the application:
- ``users``: credential store, with embedded snapshots of each user's books
- ``books``: authoritative book records, each pointing at its owner
- ``sessions``: server-side login sessions keyed by opaque token
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import ConnectionFailure

logger = structlog.get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse an identifier, returning None when it is not a valid ObjectId."""
    if value is None:
        return None
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class UserStore:
    """Credential store over the ``users`` collection."""

    def __init__(self, database: AsyncIOMotorDatabase):
        self.collection = database.users

    async def find_by_email(self, email: str) -> Optional[Dict]:
        return await self.collection.find_one({"email": email})

    async def find_by_id(self, user_id: Any) -> Optional[Dict]:
        object_id = to_object_id(user_id)
        if object_id is None:
            return None
        return await self.collection.find_one({"_id": object_id})

    async def list_all(self) -> List[Dict]:
        cursor = self.collection.find({}).sort("created_at", 1)
        return await cursor.to_list(length=None)

    async def create(self, full_name: str, email: str, password_hash: str) -> Dict:
        """Insert a user; ``password_hash`` must already be a digest."""
        now = utcnow()
        user_doc = {
            "full_name": full_name,
            "email": email,
            "password": password_hash,
            "books": [],
            "created_at": now,
            "updated_at": now,
        }
        result = await self.collection.insert_one(user_doc)
        user_doc["_id"] = result.inserted_id
        return user_doc

    async def append_book(self, user_id: ObjectId, book_doc: Dict) -> Optional[Dict]:
        """Append a book snapshot to the user's ``books`` list."""
        return await self.collection.find_one_and_update(
            {"_id": user_id},
            {"$push": {"books": book_doc}, "$set": {"updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )

    async def replace_book(self, user_id: ObjectId, book_doc: Dict) -> None:
        """Overwrite the embedded snapshot of ``book_doc`` if the user holds one."""
        await self.collection.update_one(
            {"_id": user_id, "books._id": book_doc["_id"]},
            {"$set": {"books.$": book_doc, "updated_at": utcnow()}},
        )

    async def remove_book(self, user_id: ObjectId, book_id: ObjectId) -> None:
        await self.collection.update_one(
            {"_id": user_id},
            {"$pull": {"books": {"_id": book_id}}, "$set": {"updated_at": utcnow()}},
        )


class BookStore:
    """Authoritative store over the ``books`` collection."""

    def __init__(self, database: AsyncIOMotorDatabase):
        self.collection = database.books
        self.users_collection_name = database.users.name

    async def find_by_title(self, title: str) -> Optional[Dict]:
        return await self.collection.find_one({"title": title})

    async def find_by_id(self, book_id: Any) -> Optional[Dict]:
        object_id = to_object_id(book_id)
        if object_id is None:
            return None
        return await self.collection.find_one({"_id": object_id})

    async def list_with_owners(self) -> List[Dict]:
        """
        All books, each with its owner document under ``owner``.

        ``owner`` is absent when the referenced user no longer exists.
        """
        pipeline = [
            {"$sort": {"created_at": 1}},
            {
                "$lookup": {
                    "from": self.users_collection_name,
                    "localField": "created_by",
                    "foreignField": "_id",
                    "as": "owner",
                }
            },
            {"$unwind": {"path": "$owner", "preserveNullAndEmptyArrays": True}},
            {"$project": {"owner.password": 0, "owner.books": 0}},
        ]
        cursor = self.collection.aggregate(pipeline)
        return await cursor.to_list(length=None)

    async def create(self, title: str, author: str, isbn: str, desc: str, created_by: ObjectId) -> Dict:
        now = utcnow()
        book_doc = {
            "title": title,
            "author": author,
            "isbn": isbn,
            "desc": desc,
            "created_by": created_by,
            "created_at": now,
            "updated_at": now,
        }
        result = await self.collection.insert_one(book_doc)
        book_doc["_id"] = result.inserted_id
        return book_doc

    async def replace_fields(self, book_id: ObjectId, fields: Dict) -> Optional[Dict]:
        """Set ``fields`` on the book and return the updated document, or None."""
        return await self.collection.find_one_and_update(
            {"_id": book_id},
            {"$set": {**fields, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )

    async def delete(self, book_id: ObjectId) -> bool:
        result = await self.collection.delete_one({"_id": book_id})
        return result.deleted_count == 1


class SessionStore:
    """Persistence for login sessions over the ``sessions`` collection."""

    def __init__(self, database: AsyncIOMotorDatabase):
        self.collection = database.sessions

    async def insert(self, session_doc: Dict) -> None:
        await self.collection.insert_one(session_doc)

    async def find(self, token: str) -> Optional[Dict]:
        return await self.collection.find_one({"_id": token})

    async def delete(self, token: str) -> None:
        await self.collection.delete_one({"_id": token})


class DatabaseManager:
    """
    Async MongoDB manager.
    Owns the client, creates indexes and hands out the collection stores.
    """

    def __init__(self, connection_url: str, database_name: str):
        """
        Initialize MongoDB manager.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None

    async def connect(self) -> None:
        """Establish connection to MongoDB."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url, tz_aware=True)
            self.database = self.client[self.database_name]

            # Test connection
            await self.client.admin.command("ping")
            logger.info("Successfully connected to MongoDB", database=self.database_name)

            await self._create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def _create_indexes(self) -> None:
        """
        Create lookup indexes.
        Email and title are looked up before insert but not unique-constrained.
        """
        try:
            await self.database.users.create_index("email")
            await self.database.books.create_index("title")
            await self.database.books.create_index("created_by")

            # MongoDB removes sessions once expires_at has passed
            await self.database.sessions.create_index("expires_at", expireAfterSeconds=0)

            logger.info("Successfully created MongoDB indexes")

        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    def user_store(self) -> UserStore:
        return UserStore(self.database)

    def book_store(self) -> BookStore:
        return BookStore(self.database)

    def session_store(self) -> SessionStore:
        return SessionStore(self.database)

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")

            users_count = await self.database.users.count_documents({})
            books_count = await self.database.books.count_documents({})

            return {
                "status": "healthy",
                "users_count": users_count,
                "books_count": books_count,
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
