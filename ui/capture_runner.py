"""Background asyncio loop that hosts the capture coroutines for the GUI."""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future
from typing import Any, Coroutine

LOG = logging.getLogger(__name__)


class AsyncCaptureRunner:
    """Run capture coroutines on a dedicated event-loop thread.

    The Qt main thread stays responsive while a capture sleeps between
    epochs; results come back as ``concurrent.futures.Future`` objects.
    """

    def __init__(self) -> None:
        self._loop = asyncio.new_event_loop()
        self._ready = threading.Event()
        self._stopped = False
        self._thread = threading.Thread(target=self._run_loop, name="capture-loop", daemon=True)
        self._thread.start()
        self._ready.wait()

    def submit(self, coro: Coroutine[Any, Any, Any]) -> Future:
        if self._stopped:
            coro.close()
            raise RuntimeError("AsyncCaptureRunner has been closed")
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def close(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=2.0)
        if self._thread.is_alive():
            LOG.warning("Capture loop did not stop within 2 s")

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._ready.set()
        self._loop.run_forever()
        pending = [t for t in asyncio.all_tasks(self._loop) if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            self._loop.run_until_complete(
                asyncio.gather(*pending, return_exceptions=True)
            )
        self._loop.close()
