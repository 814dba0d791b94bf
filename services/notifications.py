"""
User-facing notification sink.

Routers hand a NotificationSink to the services that need to tell the user
something (sync skipped, sync failed, saved). The collected notifications
are returned with the response; nothing downstream depends on them.
"""
import logging
from typing import List, Literal

from pydantic import BaseModel

logger = logging.getLogger("wellness-api.notifications")

Variant = Literal["default", "destructive"]


class Notification(BaseModel):
    title: str
    description: str = ""
    variant: Variant = "default"


class NotificationSink:
    """Collects notifications for a single request."""

    def __init__(self):
        self._items: List[Notification] = []

    def notify(self, title: str, description: str = "", variant: Variant = "default") -> None:
        self._items.append(Notification(title=title, description=description, variant=variant))
        if variant == "destructive":
            logger.warning(f"Notification: {title} - {description}")
        else:
            logger.debug(f"Notification: {title} - {description}")

    def sync_skipped(self) -> None:
        self.notify("Cloud sync skipped", "Sign in to sync to cloud.")

    def sync_failed(self, message: str) -> None:
        self.notify("Cloud sync failed", message, "destructive")

    def saved(self, description: str) -> None:
        self.notify("Saved to cloud", description)

    @property
    def items(self) -> List[Notification]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)
