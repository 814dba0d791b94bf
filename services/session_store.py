# services/session_store.py
"""
Per-session MedicationStore registry.

Authenticated sessions are keyed by user id and hydrated from Supabase the
first time a date is read; anonymous sessions are keyed by the client's
X-Session-ID and live only in memory.
"""
import asyncio
import logging
import os
from collections import OrderedDict
from datetime import date
from typing import Optional, Set

from api.utils import hash_user_id_for_logging
from services.medication_repository import MedicationRepository
from services.medication_schedule import MedicationStore

logger = logging.getLogger("wellness-api.session_store")

SESSION_LIMIT = int(os.getenv("SESSION_LIMIT", "1000"))


class _Session:
    def __init__(self, user_id: Optional[str]):
        self.store = MedicationStore(user_id=user_id)
        self.loaded_dates: Set[date] = set()
        self.lock = asyncio.Lock()


class SessionRegistry:
    """
    Holds one MedicationStore per session owner.

    At most `limit` sessions are kept; the least recently used one is dropped
    when a new owner arrives. A dropped signed-in session is hydrated again on
    its next read, a dropped anonymous one starts empty.
    """

    def __init__(self, limit: int = SESSION_LIMIT):
        self.limit = max(1, limit)
        self._sessions: "OrderedDict[str, _Session]" = OrderedDict()

    def _session(self, owner: str, user_id: Optional[str]) -> _Session:
        session = self._sessions.get(owner)
        if session is not None:
            self._sessions.move_to_end(owner)
            return session

        session = _Session(user_id)
        self._sessions[owner] = session
        while len(self._sessions) > self.limit:
            evicted, _ = self._sessions.popitem(last=False)
            logger.info(f"Evicted medication session {hash_user_id_for_logging(evicted)}")
        return session

    async def get_store(
        self,
        owner: str,
        user_id: Optional[str],
        repository: Optional[MedicationRepository],
        on_date: date,
    ) -> MedicationStore:
        """
        Return the owner's store, with medications and the logs for on_date loaded.

        Local-only sessions (no user_id or no repository) are never hydrated.
        """
        session = self._session(owner, user_id)
        if not user_id or repository is None:
            return session.store

        async with session.lock:
            if not session.store.loaded:
                medications = await repository.list_medications(user_id)
                logs = await repository.list_logs(user_id, on_date)
                session.store.load(medications, logs)
                session.loaded_dates.add(on_date)
                logger.info(
                    f"Hydrated medication store for {hash_user_id_for_logging(user_id)}: "
                    f"{len(medications)} medications, {len(logs)} logs"
                )
            elif on_date not in session.loaded_dates:
                for log in await repository.list_logs(user_id, on_date):
                    session.store.put_log(log)
                session.loaded_dates.add(on_date)
        return session.store

    def reset(self, owner: str) -> bool:
        """Forget a session so the next read reloads from the database."""
        return self._sessions.pop(owner, None) is not None

    def clear(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)


_registry: Optional[SessionRegistry] = None


def get_session_registry() -> SessionRegistry:
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry
