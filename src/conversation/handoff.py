"""Handoff registry — is a human agent currently owning the conversation."""

from abc import ABC, abstractmethod

import redis.asyncio as redis
import structlog

logger = structlog.get_logger()


class HandoffRegistry(ABC):
    @abstractmethod
    async def is_active(self, sender_id: str) -> bool:
        ...

    @abstractmethod
    async def set(self, sender_id: str, active: bool) -> None:
        ...

    @abstractmethod
    async def count_active(self) -> int:
        ...


class InMemoryHandoffRegistry(HandoffRegistry):
    def __init__(self) -> None:
        self._flags: dict[str, bool] = {}

    async def is_active(self, sender_id: str) -> bool:
        return self._flags.get(sender_id, False)

    async def set(self, sender_id: str, active: bool) -> None:
        self._flags[sender_id] = active
        logger.info("handoff_mode_set", sender_id=sender_id, active=active)

    async def count_active(self) -> int:
        return sum(1 for active in self._flags.values() if active)


class RedisHandoffRegistry(HandoffRegistry):
    """Active handoffs live in one Redis set; absence means bot mode."""

    KEY = "handoff:active"

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    async def is_active(self, sender_id: str) -> bool:
        return bool(await self.redis.sismember(self.KEY, sender_id))

    async def set(self, sender_id: str, active: bool) -> None:
        if active:
            await self.redis.sadd(self.KEY, sender_id)
        else:
            await self.redis.srem(self.KEY, sender_id)
        logger.info("handoff_mode_set", sender_id=sender_id, active=active)

    async def count_active(self) -> int:
        return int(await self.redis.scard(self.KEY))
