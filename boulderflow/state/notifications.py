"""User-facing notifications emitted by the view-state stores."""

import threading
from collections import deque
from collections.abc import Callable
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

from boulderflow.logging_config import get_logger

logger = get_logger(__name__)

NotificationVariant = Literal["default", "destructive"]
NotificationListener = Callable[["Notification"], None]

MAX_NOTIFICATION_HISTORY = 100


class Notification(BaseModel):
    """A toast-style message for the user.

    Attributes:
        title: Short heading ("Success", "Error").
        description: Sentence shown under the title.
        variant: "destructive" for failures, "default" otherwise.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    variant: NotificationVariant = "default"


class Notifier:
    """Collects notifications and fans them out to subscribers.

    Only the newest ``max_history`` notifications are kept.
    """

    def __init__(self, max_history: int = MAX_NOTIFICATION_HISTORY) -> None:
        if max_history < 1:
            raise ValueError("max_history must be at least 1")
        self._history: deque[Notification] = deque(maxlen=max_history)
        self._listeners: list[NotificationListener] = []
        self._lock = threading.Lock()

    @property
    def history(self) -> list[Notification]:
        with self._lock:
            return list(self._history)

    @property
    def last(self) -> Optional[Notification]:
        with self._lock:
            return self._history[-1] if self._history else None

    def subscribe(self, listener: NotificationListener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def notify(
        self,
        title: str,
        description: str,
        variant: NotificationVariant = "default",
    ) -> Notification:
        notification = Notification(
            title=title, description=description, variant=variant
        )
        with self._lock:
            self._history.append(notification)
            listeners = list(self._listeners)

        log = logger.warning if variant == "destructive" else logger.info
        log("Notification: %s", title, extra={"description": description})

        for listener in listeners:
            try:
                listener(notification)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Notification listener failed")
        return notification

    def success(self, description: str) -> Notification:
        return self.notify("Success", description)

    def error(self, description: str) -> Notification:
        return self.notify("Error", description, variant="destructive")

    def clear(self) -> None:
        with self._lock:
            self._history.clear()
