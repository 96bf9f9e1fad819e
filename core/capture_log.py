"""Bounded, timestamped log of capture activity."""
from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime
from typing import Callable, Iterator, Optional

DEFAULT_CAPACITY = 300


class CaptureLog:
    """Fixed-capacity FIFO of ``"HH:MM:SS message"`` lines.

    Every entry is mirrored to ``logger`` so unattended runs also leave a
    trace in the application log. Written from the capture loop thread and
    read from the GUI thread.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        *,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._entries: deque[str] = deque(maxlen=int(capacity))
        self._lock = threading.Lock()
        self._logger = logger
        self._clock = clock

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def push(self, message: str, level: int = logging.INFO) -> str:
        entry = f"{self._clock().strftime('%H:%M:%S')} {message}"
        with self._lock:
            self._entries.append(entry)
        if self._logger is not None:
            self._logger.log(level, "%s", message)
        return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def entries(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def text(self) -> str:
        return "\n".join(self.entries())

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries())
