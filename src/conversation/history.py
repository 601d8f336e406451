"""History ledger — append-only per-sender message log."""

from abc import ABC, abstractmethod

import redis.asyncio as redis
import structlog

from src.schemas.conversation import MessageRecord

logger = structlog.get_logger()


class HistoryLedger(ABC):
    """Records are only ever appended; nothing is removed or reordered."""

    @abstractmethod
    async def append(self, sender_id: str, record: MessageRecord) -> int:
        """Append a record and return the new history length."""
        ...

    @abstractmethod
    async def get(self, sender_id: str) -> list[MessageRecord]:
        ...

    @abstractmethod
    async def count(self) -> int:
        """Number of senders with a stored history."""
        ...


class InMemoryHistoryLedger(HistoryLedger):
    def __init__(self) -> None:
        self._items: dict[str, list[MessageRecord]] = {}

    async def append(self, sender_id: str, record: MessageRecord) -> int:
        history = self._items.setdefault(sender_id, [])
        history.append(record)
        logger.debug(
            "message_stored",
            sender_id=sender_id,
            sender=record.sender.value,
            length=len(history),
        )
        return len(history)

    async def get(self, sender_id: str) -> list[MessageRecord]:
        # Records are frozen, a shallow copy keeps the ledger itself safe
        return list(self._items.get(sender_id, []))

    async def count(self) -> int:
        return len(self._items)


class RedisHistoryLedger(HistoryLedger):
    """One Redis list per sender, RPUSH only."""

    INDEX_KEY = "histories"

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    def _key(self, sender_id: str) -> str:
        return f"history:{sender_id}"

    async def append(self, sender_id: str, record: MessageRecord) -> int:
        length = await self.redis.rpush(self._key(sender_id), record.model_dump_json())
        await self.redis.sadd(self.INDEX_KEY, sender_id)
        logger.debug(
            "message_stored",
            sender_id=sender_id,
            sender=record.sender.value,
            length=length,
        )
        return int(length)

    async def get(self, sender_id: str) -> list[MessageRecord]:
        raw = await self.redis.lrange(self._key(sender_id), 0, -1)
        return [MessageRecord.model_validate_json(item) for item in raw]

    async def count(self) -> int:
        return int(await self.redis.scard(self.INDEX_KEY))
