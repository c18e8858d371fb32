"""
Alert notification dispatch.

The service never talks to the gateway inside its transaction. Alerts are
turned into AlertPayloads and handed to the dispatcher through
``transaction.on_commit``; a worker thread drains a bounded queue and calls
the gateway with a fixed number of attempts.

Delivery is best-effort: failures are logged and counted, never raised.

Usage:
    from batchledger.notifications import get_alert_dispatcher

    dispatcher = get_alert_dispatcher()
    dispatcher.submit(payload)
    dispatcher.drain()          # wait until the queue is empty
    dispatcher.stats()          # {'queued': 0, 'delivered': 1, ...}
"""

from __future__ import annotations

import logging
import queue
import threading
import time

from batchledger.conf import batchledger_settings
from batchledger.protocols.notifications import (
    AlertNotificationGateway,
    AlertPayload,
    NotificationResult,
)

logger = logging.getLogger('batchledger')

_STOP = object()


class AlertDispatcher:
    """
    Bounded queue + single worker in front of a notification gateway.

    Args:
        gateway: Gateway to deliver to (None = configured gateway, loaded lazily)
        maxsize: Queue capacity; submissions beyond it are dropped
        max_attempts: Delivery attempts per payload
        retry_delay_ms: Base delay between attempts (linear backoff)
        run_async: False delivers inline in submit(), for tests and scripts
    """

    def __init__(self, gateway: AlertNotificationGateway | None = None,
                 maxsize: int | None = None, max_attempts: int | None = None,
                 retry_delay_ms: int | None = None, run_async: bool | None = None):
        self._gateway = gateway
        self.maxsize = maxsize if maxsize is not None else batchledger_settings.NOTIFICATION_QUEUE_SIZE
        self.max_attempts = max(1, max_attempts if max_attempts is not None
                                else batchledger_settings.NOTIFICATION_MAX_ATTEMPTS)
        self.retry_delay_ms = (retry_delay_ms if retry_delay_ms is not None
                               else batchledger_settings.NOTIFICATION_RETRY_DELAY_MS)
        self.run_async = run_async if run_async is not None else batchledger_settings.NOTIFICATION_ASYNC

        self._queue: queue.Queue = queue.Queue(maxsize=self.maxsize)
        self._lock = threading.Lock()
        self._worker: threading.Thread | None = None
        self._counts = {'delivered': 0, 'failed': 0, 'dropped': 0}

    @property
    def gateway(self) -> AlertNotificationGateway:
        if self._gateway is None:
            from batchledger.adapters.gateway import get_notification_gateway
            self._gateway = get_notification_gateway()
        return self._gateway

    @property
    def depth(self) -> int:
        """Payloads waiting in the queue."""
        return self._queue.qsize()

    # ══════════════════════════════════════════════════════════════
    # SUBMISSION
    # ══════════════════════════════════════════════════════════════

    def submit(self, payload: AlertPayload) -> bool:
        """
        Enqueue a payload for delivery.

        Returns:
            False if the queue was full and the payload was dropped
        """
        if not self.run_async:
            self.deliver(payload)
            return True

        self._ensure_worker()
        try:
            self._queue.put_nowait(payload)
        except queue.Full:
            self._count('dropped')
            logger.warning(
                "alert.notification_dropped",
                extra={
                    "alert_id": payload.alert_id,
                    "alert_type": payload.alert_type,
                    "queue_size": self.maxsize,
                },
            )
            return False
        return True

    def deliver(self, payload: AlertPayload) -> NotificationResult:
        """Call the gateway, retrying up to max_attempts. Never raises."""
        error = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = self.gateway.notify(payload)
            except Exception as e:  # gateway failures must not escape
                result = NotificationResult(success=False, error=str(e) or type(e).__name__)

            if result.success:
                self._count('delivered')
                logger.debug(
                    "alert.notification_sent",
                    extra={"alert_id": payload.alert_id, "attempt": attempt},
                )
                return result

            error = result.error
            logger.warning(
                "alert.notification_attempt_failed",
                extra={
                    "alert_id": payload.alert_id,
                    "attempt": attempt,
                    "error": error,
                },
            )
            if attempt < self.max_attempts and self.retry_delay_ms:
                time.sleep(self.retry_delay_ms * attempt / 1000)

        self._count('failed')
        logger.error(
            "alert.notification_failed",
            extra={
                "alert_id": payload.alert_id,
                "alert_type": payload.alert_type,
                "attempts": self.max_attempts,
                "error": error,
            },
        )
        return NotificationResult(success=False, error=error)

    # ══════════════════════════════════════════════════════════════
    # WORKER
    # ══════════════════════════════════════════════════════════════

    def _ensure_worker(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        with self._lock:
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(
                    target=self._run,
                    name='batchledger-alerts',
                    daemon=True,
                )
                self._worker.start()

    def _run(self) -> None:
        while True:
            payload = self._queue.get()
            try:
                if payload is _STOP:
                    return
                self.deliver(payload)
            finally:
                self._queue.task_done()

    def drain(self) -> None:
        """Block until every queued payload has been processed."""
        self._queue.join()

    def stop(self, timeout: float | None = 5.0) -> None:
        """Process what is queued, then stop the worker."""
        worker = self._worker
        if worker is None or not worker.is_alive():
            return
        self._queue.put(_STOP)
        worker.join(timeout)
        self._worker = None

    def _count(self, key: str) -> None:
        with self._lock:
            self._counts[key] += 1

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {'queued': self.depth, **self._counts}


_dispatcher_lock = threading.Lock()
_dispatcher: AlertDispatcher | None = None


def get_alert_dispatcher() -> AlertDispatcher:
    """Process-wide dispatcher built from settings."""
    global _dispatcher

    if _dispatcher is None:
        with _dispatcher_lock:
            if _dispatcher is None:  # double-checked
                _dispatcher = AlertDispatcher()
    return _dispatcher


def reset_alert_dispatcher() -> None:
    """Stop and drop the cached dispatcher. Useful for testing."""
    global _dispatcher
    with _dispatcher_lock:
        if _dispatcher is not None:
            _dispatcher.stop()
        _dispatcher = None
