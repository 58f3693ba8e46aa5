"""
Keyed storage for conversation state.

ConversationMemory never holds state itself; it reads and writes through
a ConversationStore so tests get an isolated store and multiple workers
can share one through Redis.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.config import settings
from app.infra.redis import APP_PREFIX, get_redis
from .models import ConversationState

logger = logging.getLogger(__name__)


class ConversationStore(ABC):
    """Async key/value store for ConversationState."""

    @abstractmethod
    async def get(self, conversation_id: str) -> Optional[ConversationState]:
        """Get state or None if not stored."""

    @abstractmethod
    async def set(self, state: ConversationState) -> None:
        """Insert or replace state."""

    @abstractmethod
    async def delete(self, conversation_id: str) -> bool:
        """Delete state. Returns True if something was removed."""

    @abstractmethod
    async def keys(self) -> list[str]:
        """All stored conversation ids."""

    async def sweep(self, max_age: timedelta, now: datetime) -> int:
        """
        Remove every conversation idle for longer than max_age.

        Returns:
            Number of conversations removed
        """
        removed = 0
        for conversation_id in await self.keys():
            state = await self.get(conversation_id)
            if state is not None and now - state.last_interaction > max_age:
                if await self.delete(conversation_id):
                    removed += 1
        return removed


class InMemoryConversationStore(ConversationStore):
    """Process-local store. State is lost on restart."""

    def __init__(self):
        self._states: dict[str, ConversationState] = {}

    async def get(self, conversation_id: str) -> Optional[ConversationState]:
        return self._states.get(conversation_id)

    async def set(self, state: ConversationState) -> None:
        self._states[state.conversation_id] = state

    async def delete(self, conversation_id: str) -> bool:
        return self._states.pop(conversation_id, None) is not None

    async def keys(self) -> list[str]:
        return list(self._states)


class RedisConversationStore(ConversationStore):
    """
    Redis-backed store.

    Key pattern: scheduling:v1:conversation:{conversation_id}

    Keys expire after the liveness window, so sweep() only has to catch
    entries whose TTL was extended by a clock skew between workers.
    """

    CONVERSATION_PREFIX = f"{APP_PREFIX}conversation:"

    def __init__(self, redis_client: Optional[Redis] = None):
        """Initialize store.

        Args:
            redis_client: Optional Redis client (for testing)
        """
        self._client = redis_client
        self._ttl = timedelta(hours=settings.memory_max_age_hours)

    async def _redis(self) -> Redis:
        if self._client is None:
            self._client = await get_redis()
        if self._client is None:
            raise RedisError("Redis unavailable")
        return self._client

    def _key(self, conversation_id: str) -> str:
        """Generate Redis key with namespace."""
        return f"{self.CONVERSATION_PREFIX}{conversation_id}"

    async def get(self, conversation_id: str) -> Optional[ConversationState]:
        client = await self._redis()
        data = await client.get(self._key(conversation_id))
        if data is None:
            return None
        return ConversationState.from_json(data)

    async def set(self, state: ConversationState) -> None:
        client = await self._redis()
        await client.setex(self._key(state.conversation_id), self._ttl, state.to_json())
        logger.debug(f"Conversation saved: {state.conversation_id}")

    async def delete(self, conversation_id: str) -> bool:
        client = await self._redis()
        deleted = await client.delete(self._key(conversation_id))
        return bool(deleted)

    async def keys(self) -> list[str]:
        client = await self._redis()
        prefix_len = len(self.CONVERSATION_PREFIX)
        return [
            key[prefix_len:]
            async for key in client.scan_iter(match=f"{self.CONVERSATION_PREFIX}*")
        ]


def create_conversation_store() -> ConversationStore:
    """Build the store selected by conversation_store_backend."""
    if settings.conversation_store_backend == "redis":
        logger.info("Using Redis conversation store")
        return RedisConversationStore()
    return InMemoryConversationStore()
