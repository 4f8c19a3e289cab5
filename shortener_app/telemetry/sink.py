"""
Fire-and-forget remote event log.

record() hands the event to a small thread pool and returns immediately.
The request to the remote collector has a short timeout; when it fails the
event is written to the local log instead. At most max_pending events wait
for the collector; anything beyond that goes straight to the local log.
Nothing here ever raises into the caller.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Optional
import logging
import threading

import requests

logger = logging.getLogger(__name__)


class EventSink:
    """
    Remote event recorder.

    Labels (stack, package) are free-form tags, lowercased before sending.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: float = 5.0,
        max_workers: int = 2,
        max_pending: int = 100,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            url: Collector endpoint; None disables remote sending
            timeout: Seconds before a send is abandoned
            max_workers: Threads used for sending
            max_pending: Events queued or in flight before new ones are
                logged locally instead
            session: requests session (tests inject a fake one)
        """
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self._slots = threading.BoundedSemaphore(max_pending)
        self._executor = (
            ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="event-sink")
            if url else None
        )

    @property
    def enabled(self) -> bool:
        return self._executor is not None

    def record(self, stack: str, level: str, package: str, message: str) -> None:
        """Queue an event for the remote collector. Never blocks, never raises."""
        if not self.enabled:
            return

        payload = {
            "stack": stack.lower(),
            "level": level.lower(),
            "package": package.lower(),
            "message": message,
        }
        if not self._slots.acquire(blocking=False):
            self._record_locally(payload, "backlog full")
            return

        try:
            self._executor.submit(self._send, payload)
        except RuntimeError:
            # Executor already shut down
            self._slots.release()
            self._record_locally(payload, "sink closed")

    def _send(self, payload: dict) -> None:
        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except Exception as e:
            self._record_locally(payload, str(e))
        finally:
            self._slots.release()

    @staticmethod
    def _record_locally(payload: dict, reason: str) -> None:
        level = logging.getLevelName(payload["level"].upper())
        logger.log(
            level if isinstance(level, int) else logging.INFO,
            "[%s] %s (remote log unavailable: %s)",
            payload["package"], payload["message"], reason,
        )

    def close(self, wait: bool = False) -> None:
        """
        Stop sending.

        wait=True drains the backlog first; otherwise queued events are
        dropped and only sends already in flight finish.
        """
        if self._executor is not None:
            self._executor.shutdown(wait=wait, cancel_futures=not wait)
