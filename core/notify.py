from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Literal

logger = logging.getLogger(__name__)

Level = Literal["success", "info", "error"]


@dataclass(frozen=True)
class Notification:
    level: Level
    message: str


class Notifier:
    """Transient user-facing messages, drained by whichever UI is rendering."""

    def __init__(self, maxlen: int = 50):
        self._items: Deque[Notification] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def push(self, level: Level, message: str) -> None:
        if not message:
            return
        if level == "error":
            logger.error("notify: %s", message)
        else:
            logger.info("notify: %s", message)
        with self._lock:
            self._items.append(Notification(level, message))

    def success(self, message: str) -> None:
        self.push("success", message)

    def info(self, message: str) -> None:
        self.push("info", message)

    def error(self, message: str) -> None:
        self.push("error", message)

    def drain(self) -> List[Notification]:
        with self._lock:
            items = list(self._items)
            self._items.clear()
        return items

    def __len__(self) -> int:
        return len(self._items)
