"""
MongoDB Session Store
Durable quiz session persistence with a TTL index
FILE: app/crud/sessions.py
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional
import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.config import Settings
from app.core.errors import StoreError
from app.db.mongodb import (
    close_mongo_connection,
    connect_to_mongo,
    create_mongo_client,
    get_database,
    ping,
)
from app.models.quiz_sessions import QuizSession
from app.services.session_store import SessionStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MongoSessionStore(SessionStore):
    """
    Session store backed by a MongoDB collection.

    Documents carry an expiresAt field; a TTL index lets MongoDB reclaim
    abandoned sessions. Reads also ignore documents past expiresAt, since
    the TTL monitor only runs about once a minute.
    """

    backend_name = "mongodb"

    def __init__(
        self,
        collection: AsyncIOMotorCollection,
        ttl_seconds: int,
        client: Optional[AsyncIOMotorClient] = None,
        url: str = "",
        clock: Callable[[], datetime] = _utcnow,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize MongoDB session store

        Args:
            collection: Collection holding session documents
            ttl_seconds: Lifetime of a session from creation
            client: Owning client (closed by close(), pinged by health_check())
            url: Connection URL, for logging
            clock: Time source
            logger: Optional logger (module logger by default)
        """
        self.collection = collection
        self.ttl = timedelta(seconds=ttl_seconds)
        self.client = client
        self.url = url
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        logger: Optional[logging.Logger] = None
    ) -> "MongoSessionStore":
        client = create_mongo_client(settings)
        db = get_database(client, settings.database_name)
        return cls(
            collection=db[settings.sessions_collection],
            ttl_seconds=settings.durable_session_ttl_seconds,
            client=client,
            url=settings.mongodb_url,
            logger=logger
        )

    async def connect(self) -> None:
        """Test the connection and ensure indexes exist"""
        try:
            if self.client is not None:
                await connect_to_mongo(self.client, self.url)

            await self.collection.create_index("sessionId", unique=True)
            await self.collection.create_index("expiresAt", expireAfterSeconds=0)
            self.logger.info("✓ Session indexes ready")
        except PyMongoError as e:
            self.logger.error(f"❌ Failed to prepare session collection: {e}")
            raise StoreError(f"Failed to prepare session store: {e}")

    async def close(self) -> None:
        if self.client is not None:
            close_mongo_connection(self.client)

    def _to_document(self, session: QuizSession) -> Dict[str, Any]:
        return session.model_dump()

    def _from_document(self, doc: Dict[str, Any]) -> QuizSession:
        doc.pop("_id", None)
        doc.pop("expiresAt", None)
        return QuizSession(**doc)

    async def create(self, session: QuizSession) -> QuizSession:
        doc = self._to_document(session)
        doc["expiresAt"] = self.clock() + self.ttl

        try:
            await self.collection.insert_one(doc)
        except DuplicateKeyError:
            raise StoreError(f"Session already exists: {session.sessionId}")
        except PyMongoError as e:
            self.logger.error(f"❌ Failed to create session {session.sessionId}: {e}")
            raise StoreError(f"Failed to create session: {e}")

        self.logger.info(f"✅ Created session in MongoDB: {session.sessionId}")
        return session.model_copy(deep=True)

    async def get(self, session_id: str) -> Optional[QuizSession]:
        try:
            doc = await self.collection.find_one(
                {"sessionId": session_id, "expiresAt": {"$gt": self.clock()}}
            )
        except PyMongoError as e:
            self.logger.error(f"❌ Failed to retrieve session {session_id}: {e}")
            raise StoreError(f"Failed to retrieve session: {e}")

        if not doc:
            self.logger.warning(f"⚠️ Session not found: {session_id}")
            return None

        return self._from_document(doc)

    async def update(self, session: QuizSession) -> QuizSession:
        updated = session.model_copy(update={"version": session.version + 1}, deep=True)

        try:
            result = await self.collection.update_one(
                {"sessionId": session.sessionId, "version": session.version},
                {"$set": self._to_document(updated)}
            )
        except PyMongoError as e:
            self.logger.error(f"❌ Failed to update session {session.sessionId}: {e}")
            raise StoreError(f"Failed to update session: {e}")

        if result.matched_count == 0:
            self.logger.error(
                f"❌ Session {session.sessionId} missing or modified concurrently "
                f"(expected version {session.version})"
            )
            raise StoreError(f"Session {session.sessionId} was modified concurrently or no longer exists")

        self.logger.debug(f"✓ Updated session {session.sessionId} to version {updated.version}")
        return updated

    async def delete(self, session_id: str) -> bool:
        try:
            result = await self.collection.delete_one({"sessionId": session_id})
        except PyMongoError as e:
            self.logger.error(f"❌ Failed to delete session {session_id}: {e}")
            raise StoreError(f"Failed to delete session: {e}")

        if result.deleted_count > 0:
            self.logger.info(f"✅ Deleted session: {session_id}")
            return True

        self.logger.warning(f"⚠️ Session not found for deletion: {session_id}")
        return False

    async def count(self) -> int:
        try:
            return await self.collection.count_documents({"expiresAt": {"$gt": self.clock()}})
        except PyMongoError as e:
            raise StoreError(f"Failed to count sessions: {e}")

    async def health_check(self) -> bool:
        if self.client is None:
            return True

        try:
            await ping(self.client)
            return True
        except PyMongoError as e:
            self.logger.error(f"❌ MongoDB health check failed: {e}")
            return False
