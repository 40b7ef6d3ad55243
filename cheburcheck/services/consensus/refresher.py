"""
Timer-driven whitelist refresh.

Recomputes once on start, then every `interval_seconds` until stopped.
"""
import logging
import threading
from typing import Optional

from .whitelist_builder import WhitelistBuilder

logger = logging.getLogger(__name__)


class WhitelistRefresher:

    def __init__(self, builder: WhitelistBuilder, interval_seconds: float):
        self.builder = builder
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="whitelist-refresher", daemon=True)
        self._thread.start()
        logger.info(f"Refreshing whitelist every {self.interval_seconds}s")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.builder.recompute()
            except Exception:
                logger.exception("Scheduled whitelist recompute crashed")
            if self._stop.wait(self.interval_seconds):
                break
