# services/guardian_monitor.py
"""
Near-real-time mood feed for a couple group.

A guardian sees the latest mood entries of the couple: one query for the
recent history, then a Supabase Realtime subscription that prepends every
inserted mood_entries row. There is no dedup against the initial query, no
reconnect and no acknowledgement.
"""
import logging
from typing import Any, Dict, List, Optional

from supabase import AsyncClient

logger = logging.getLogger("wellness-api.guardian_monitor")

FEED_COLUMNS = "created_at, score, mood_id, note"
FEED_LIMIT = 20
FEED_BUFFER = 5


def extract_record(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Pull the inserted row out of a postgres_changes payload.

    Newer realtime clients deliver {"new": row, ...}; older ones nest it as
    {"data": {"record": row}}.
    """
    if not isinstance(payload, dict):
        return None
    record = payload.get("new")
    if record:
        return record
    data = payload.get("data") or {}
    return data.get("record") or None


class GuardianMonitor:
    """Mood feed for one couple id."""

    def __init__(self, client: AsyncClient, couple_id: str, limit: int = FEED_LIMIT):
        self.client = client
        self.couple_id = couple_id
        self.limit = limit
        self.moods: List[Dict[str, Any]] = []
        self._channel = None

    @property
    def subscribed(self) -> bool:
        return self._channel is not None

    async def load(self) -> List[Dict[str, Any]]:
        response = await self.client.table("mood_entries")\
            .select(FEED_COLUMNS)\
            .eq("couple_id", self.couple_id)\
            .order("created_at", desc=True)\
            .limit(self.limit)\
            .execute()
        self.moods = list(response.data or [])
        return self.moods

    def handle_insert(self, payload: Dict[str, Any]) -> None:
        record = extract_record(payload)
        if record is None:
            logger.warning(f"Realtime payload without a record for couple {self.couple_id[:8]}")
            return
        self.moods.insert(0, record)
        del self.moods[self.limit * FEED_BUFFER:]

    async def start(self) -> None:
        if self._channel is not None:
            return
        channel = self.client.channel(f"mood-realtime-{self.couple_id}")
        channel.on_postgres_changes(
            "INSERT",
            schema="public",
            table="mood_entries",
            filter=f"couple_id=eq.{self.couple_id}",
            callback=self.handle_insert,
        )
        await channel.subscribe()
        self._channel = channel
        logger.info(f"Guardian feed subscribed for couple {self.couple_id[:8]}...")

    async def stop(self) -> None:
        if self._channel is None:
            return
        channel, self._channel = self._channel, None
        await self.client.remove_channel(channel)
        logger.info(f"Guardian feed unsubscribed for couple {self.couple_id[:8]}...")


class GuardianRegistry:
    """One running monitor per couple id."""

    def __init__(self):
        self._monitors: Dict[str, GuardianMonitor] = {}

    async def get_or_start(self, client: AsyncClient, couple_id: str) -> GuardianMonitor:
        monitor = self._monitors.get(couple_id)
        if monitor is not None:
            return monitor

        monitor = GuardianMonitor(client, couple_id)
        await monitor.load()
        try:
            await monitor.start()
        except Exception as e:
            # history is still useful without the live channel
            logger.warning(f"Realtime subscription failed for couple {couple_id[:8]}: {e}")
        self._monitors[couple_id] = monitor
        return monitor

    async def stop_all(self) -> None:
        for couple_id, monitor in list(self._monitors.items()):
            try:
                await monitor.stop()
            except Exception as e:
                logger.warning(f"Error stopping guardian feed {couple_id[:8]}: {e}")
        self._monitors.clear()


_registry: Optional[GuardianRegistry] = None


def get_guardian_registry() -> GuardianRegistry:
    global _registry
    if _registry is None:
        _registry = GuardianRegistry()
    return _registry
