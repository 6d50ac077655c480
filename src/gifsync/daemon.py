"""Control loop: periodic passes plus signal-triggered passes and resets.

Every pass, periodic or signal-driven, runs on the single consumer in
:meth:`Daemon.run`. Signal handlers and :meth:`Daemon.request` only enqueue
a :class:`Request`, so two passes can never run at the same time.
"""

from __future__ import annotations

import enum
import logging
import queue
import signal
from types import FrameType

from gifsync.client.errors import FetchError, GifSyncError, StateError
from gifsync.notify import EventSink
from gifsync.reconciler import Reconciler

logger = logging.getLogger(__name__)

# Retry delay after a failed pass grows by this step per consecutive failure.
FAIL_BACKOFF_STEP_S: float = 5.0


class Request(enum.Enum):
    RECONCILE = "reconcile"
    RESET_VLANS = "reset_vlans"
    RESET_ALL = "reset_all"
    TERMINATE = "terminate"


SIGNAL_REQUESTS: dict[signal.Signals, Request] = {
    signal.SIGHUP: Request.RECONCILE,
    signal.SIGUSR1: Request.RESET_VLANS,
    signal.SIGUSR2: Request.RESET_ALL,
    signal.SIGINT: Request.TERMINATE,
    signal.SIGTERM: Request.TERMINATE,
}


class Daemon:
    """Single-consumer executor of reconciliation requests.

    Args:
        reconciler: Performs the passes.
        interval_s: Pause between periodic passes.
        sink: Receives pass failures.
    """

    def __init__(self, reconciler: Reconciler, interval_s: float, sink: EventSink) -> None:
        self.reconciler = reconciler
        self.interval_s = interval_s
        self.sink = sink
        self._requests: queue.SimpleQueue[Request] = queue.SimpleQueue()
        self._stopping = False
        self._fail_delay_s = 0.0

    def request(self, req: Request) -> None:
        """Ask the consumer to perform *req* as soon as the current pass ends.

        Safe to call from a signal handler.
        """
        if req is Request.TERMINATE:
            self._stopping = True
        self._requests.put(req)

    def install_signal_handlers(self) -> None:
        for signum in SIGNAL_REQUESTS:
            signal.signal(signum, self._on_signal)

    def run(self) -> int:
        """Serve requests until a terminate request arrives.

        The first pass runs immediately; afterwards a periodic pass runs
        whenever no request arrives within the wait delay.

        Returns:
            The process exit code.
        """
        delay = 0.0
        while not self._stopping:
            try:
                req = self._requests.get(timeout=delay) if delay > 0 else self._requests.get_nowait()
            except queue.Empty:
                req = Request.RECONCILE
            if req is Request.TERMINATE or self._stopping:
                break
            delay = self.handle(req)
        logger.info("Program terminated: reason=terminate request exit_code=0")
        return 0

    def handle(self, req: Request) -> float:
        """Perform one request and return the delay before the next periodic pass."""
        logger.info("Handling %s request", req.value)
        try:
            if req is Request.RESET_VLANS:
                self.reconciler.reset_vlans()
            elif req is Request.RESET_ALL:
                self.reconciler.reset_all()
            else:
                self.reconciler.run_pass()
        except FetchError as exc:
            return self._failed("Failed to fetch config", exc)
        except StateError as exc:
            return self._failed("Failed to read current interfaces", exc)
        except GifSyncError as exc:
            return self._failed("Reconciliation pass failed", exc)

        self._fail_delay_s = 0.0
        logger.info("Configuration check completed: sleep=%ss", self.interval_s)
        return self.interval_s

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _failed(self, message: str, exc: GifSyncError) -> float:
        self._fail_delay_s += FAIL_BACKOFF_STEP_S
        self.sink.emit(
            logging.ERROR,
            message,
            {
                "source": self.reconciler.settings.config_source,
                "error": exc,
                "retry_in": f"{self._fail_delay_s:g}s",
            },
        )
        return self._fail_delay_s

    def _on_signal(self, signum: int, frame: FrameType | None) -> None:
        req = SIGNAL_REQUESTS[signal.Signals(signum)]
        logger.info("Received %s, queueing %s", signal.Signals(signum).name, req.value)
        self.request(req)
