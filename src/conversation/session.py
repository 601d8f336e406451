"""Conversation store — per-sender stage and collected data."""

from abc import ABC, abstractmethod
from typing import Optional

import redis.asyncio as redis
import structlog

from src.schemas.conversation import Conversation

logger = structlog.get_logger()


class ConversationStore(ABC):
    """Keyed by canonical sender id. Callers hold the sender lock."""

    @abstractmethod
    async def get(self, sender_id: str) -> Optional[Conversation]:
        ...

    @abstractmethod
    async def save(self, sender_id: str, conversation: Conversation) -> None:
        ...

    @abstractmethod
    async def delete(self, sender_id: str) -> None:
        ...

    @abstractmethod
    async def count(self) -> int:
        ...


class InMemoryConversationStore(ConversationStore):
    """Process-lifetime store. Keeps copies so callers can't mutate stored state."""

    def __init__(self) -> None:
        self._items: dict[str, Conversation] = {}

    async def get(self, sender_id: str) -> Optional[Conversation]:
        conversation = self._items.get(sender_id)
        if conversation is None:
            return None
        return conversation.model_copy(deep=True)

    async def save(self, sender_id: str, conversation: Conversation) -> None:
        self._items[sender_id] = conversation.model_copy(deep=True)
        logger.debug(
            "conversation_saved",
            sender_id=sender_id,
            stage=conversation.stage.value,
        )

    async def delete(self, sender_id: str) -> None:
        self._items.pop(sender_id, None)

    async def count(self) -> int:
        return len(self._items)


class RedisConversationStore(ConversationStore):
    """Manages conversation state in Redis (no TTL; resets are explicit)."""

    INDEX_KEY = "conversations"

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    def _key(self, sender_id: str) -> str:
        return f"conversation:{sender_id}"

    async def get(self, sender_id: str) -> Optional[Conversation]:
        """Get conversation from Redis."""
        data = await self.redis.get(self._key(sender_id))
        if data:
            return Conversation.model_validate_json(data)
        return None

    async def save(self, sender_id: str, conversation: Conversation) -> None:
        """Save conversation to Redis and index the sender."""
        await self.redis.set(self._key(sender_id), conversation.model_dump_json())
        await self.redis.sadd(self.INDEX_KEY, sender_id)
        logger.debug(
            "conversation_saved",
            sender_id=sender_id,
            stage=conversation.stage.value,
        )

    async def delete(self, sender_id: str) -> None:
        """Delete conversation from Redis."""
        await self.redis.delete(self._key(sender_id))
        await self.redis.srem(self.INDEX_KEY, sender_id)

    async def count(self) -> int:
        return int(await self.redis.scard(self.INDEX_KEY))
