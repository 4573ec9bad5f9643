"""
Server-side login sessions.

A session is created at login and lives until logout or until its TTL runs
out. Only the user id is kept in the session; callers needing user fields
re-read them from the credential store. The client holds the token in a
cookie whose value is ``<token>.<signature>``.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta
from typing import Optional

import structlog
from bson import ObjectId
from pydantic import BaseModel, ConfigDict

from book_api.database import SessionStore, utcnow

logger = structlog.get_logger(__name__)


class Session(BaseModel):
    """An active login session."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    token: str
    user_id: ObjectId
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime = None) -> bool:
        return (now or utcnow()) >= self.expires_at


class SessionManager:
    """Creates, resolves and destroys sessions against a SessionStore."""

    def __init__(self, store: SessionStore, secret: str, ttl_seconds: int):
        self.store = store
        self.secret = secret.encode("utf-8")
        self.ttl = timedelta(seconds=ttl_seconds)

    @staticmethod
    def generate_token() -> str:
        return secrets.token_urlsafe(32)

    async def create(self, user_id: ObjectId) -> Session:
        """Start a session for ``user_id`` and persist it."""
        now = utcnow()
        session = Session(
            token=self.generate_token(),
            user_id=user_id,
            created_at=now,
            expires_at=now + self.ttl,
        )
        await self.store.insert({
            "_id": session.token,
            "user_id": session.user_id,
            "created_at": session.created_at,
            "expires_at": session.expires_at,
        })
        logger.info("Session created", user_id=str(user_id), expires_at=session.expires_at.isoformat())
        return session

    async def resolve(self, token: Optional[str]) -> Optional[Session]:
        """Return the live session for ``token``, or None if absent or expired."""
        if not token:
            return None

        session_doc = await self.store.find(token)
        if not session_doc:
            return None

        session = Session(
            token=session_doc["_id"],
            user_id=session_doc["user_id"],
            created_at=session_doc["created_at"],
            expires_at=session_doc["expires_at"],
        )
        if session.is_expired():
            # The TTL index reaps these eventually; treat as gone now
            await self.store.delete(token)
            logger.debug("Expired session discarded", user_id=str(session.user_id))
            return None
        return session

    async def destroy(self, token: Optional[str]) -> None:
        """Remove the session. Destroying an unknown token is not an error."""
        if not token:
            return
        await self.store.delete(token)
        logger.info("Session destroyed")

    def _signature(self, token: str) -> str:
        return hmac.new(self.secret, token.encode("utf-8"), hashlib.sha256).hexdigest()

    def sign(self, token: str) -> str:
        """Cookie value for ``token``."""
        return f"{token}.{self._signature(token)}"

    def unsign(self, cookie_value: Optional[str]) -> Optional[str]:
        """Token carried by a cookie value, or None if the signature is wrong."""
        if not cookie_value or "." not in cookie_value:
            return None
        token, signature = cookie_value.rsplit(".", 1)
        if not hmac.compare_digest(signature, self._signature(token)):
            logger.warning("Session cookie with invalid signature rejected")
            return None
        return token
