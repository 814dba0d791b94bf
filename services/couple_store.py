# services/couple_store.py
"""
Remembers the active couple-group id per user.

Backed by Redis when REDIS_URL is configured; degrades to an in-process
dict when it is not (or when Redis cannot be reached). The value is a
convenience for clients, never the source of truth for membership.
"""
import logging
import os
from typing import Dict, Optional

import redis.asyncio as redis

logger = logging.getLogger("wellness-api.couple_store")

KEY_PREFIX = "couple:active:"


class CoupleStore:
    """
    Async key-value memory of the active couple id with graceful degradation.
    """

    def __init__(self):
        """Initialize store (lazy - connects on first use)."""
        self._redis_client: Optional[redis.Redis] = None
        self._memory: Dict[str, str] = {}
        self._redis_url = os.getenv("REDIS_URL")
        self._enabled = bool(self._redis_url)

        if self._enabled:
            logger.info(f"Couple store backed by Redis: {self._redis_url[:20]}...")
        else:
            logger.info("Couple store using process memory (REDIS_URL not configured)")

    async def _get_client(self) -> Optional[redis.Redis]:
        """
        Get or create the Redis connection.
        Returns None (memory mode) if the connection fails.
        """
        if not self._enabled:
            return None

        if self._redis_client is None:
            try:
                self._redis_client = redis.from_url(
                    self._redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=2,
                    socket_timeout=2
                )
                await self._redis_client.ping()
                logger.info("Redis connection established successfully")
            except Exception as e:
                logger.warning(f"Failed to connect to Redis, using process memory: {e}")
                self._redis_client = None
                self._enabled = False
                return None

        return self._redis_client

    @staticmethod
    def _key(owner: str) -> str:
        return f"{KEY_PREFIX}{owner}"

    async def get(self, owner: str) -> Optional[str]:
        """
        Active couple id for a user (or anonymous session), if any.
        """
        client = await self._get_client()
        if client is None:
            return self._memory.get(owner)

        try:
            return await client.get(self._key(owner))
        except Exception as e:
            logger.warning(f"Couple store GET error: {e}")
            return self._memory.get(owner)

    async def set(self, owner: str, couple_id: str) -> None:
        self._memory[owner] = couple_id
        client = await self._get_client()
        if client is None:
            return
        try:
            await client.set(self._key(owner), couple_id)
        except Exception as e:
            logger.warning(f"Couple store SET error: {e}")

    async def clear(self, owner: str) -> None:
        self._memory.pop(owner, None)
        client = await self._get_client()
        if client is None:
            return
        try:
            await client.delete(self._key(owner))
        except Exception as e:
            logger.warning(f"Couple store DELETE error: {e}")

    async def close(self):
        """Close Redis connection."""
        if self._redis_client:
            await self._redis_client.close()
            logger.info("Redis connection closed")


# Global store instance
_store_instance: Optional[CoupleStore] = None


def get_couple_store() -> CoupleStore:
    """
    Get the global couple store instance.

    Returns:
        CoupleStore singleton
    """
    global _store_instance
    if _store_instance is None:
        _store_instance = CoupleStore()
    return _store_instance
