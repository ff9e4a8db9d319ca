"""Fire-and-forget execution of best-effort maintenance jobs."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)


class BackgroundRunner:
    """Run each job on its own daemon thread; failures are logged, never raised."""

    def __init__(self, name: str = "background-job") -> None:
        self._name = name

    def _guarded(self, job: Callable[..., Any], *args: Any) -> None:
        try:
            job(*args)
        except Exception:
            logger.exception("Background job %s failed", getattr(job, "__name__", repr(job)))

    def submit(self, job: Callable[..., Any], *args: Any) -> threading.Thread:
        thread = threading.Thread(target=self._guarded, args=(job, *args), name=self._name, daemon=True)
        thread.start()
        return thread


class InlineRunner(BackgroundRunner):
    """Runs jobs synchronously on the caller's thread, with the same error guard."""

    def submit(self, job: Callable[..., Any], *args: Any) -> None:
        self._guarded(job, *args)
