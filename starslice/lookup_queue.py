"""
Rate-limited, strictly sequential remote lookups.

A single worker thread pulls one identifier at a time off a queue, calls the
lookup, then waits ``delay_sec`` before the next request. The wait goes
through an injectable ``sleep`` so tests can run without real delays, and it
is interrupted by ``cancel()``. Results already collected survive a
cancellation.
"""

import logging
import queue
import threading
from dataclasses import dataclass, field

from tqdm import tqdm

from .constants import SIMBAD_QUERY_DELAY_SEC
from .errors import RemoteLookupError, RemoteLookupTimeout

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass
class LookupOutcome:
    """What one queue run produced. ``results`` keeps input order."""

    results: dict = field(default_factory=dict)
    failures: dict = field(default_factory=dict)  # identifier -> "not found" / "timeout" / "unavailable" / "cancelled"
    cancelled: bool = False


class RateLimitedLookupQueue:
    """Run ``lookup(identifier)`` for many identifiers, one at a time.

    Args:
        lookup: callable returning a dict or None; may raise
            RemoteLookupTimeout or another RemoteLookupError.
        delay_sec: pause between two consecutive requests.
        sleep: ``sleep(seconds, cancel_event)``; defaults to waiting on the
            cancel event so a cancellation cuts the pause short.
        progress: show a tqdm bar.
        cancel_event: shared threading.Event; setting it has the same effect
            as ``cancel()``. A private one is created when omitted.
    """

    def __init__(
        self,
        lookup,
        *,
        delay_sec: float = SIMBAD_QUERY_DELAY_SEC,
        sleep=None,
        progress: bool = False,
        cancel_event: threading.Event | None = None,
    ):
        if delay_sec < 0:
            raise ValueError("delay_sec must be >= 0")
        self.lookup = lookup
        self.delay_sec = delay_sec
        self.sleep = sleep or _wait_on_event
        self.progress = progress
        self._cancel = cancel_event if cancel_event is not None else threading.Event()
        self._queue: queue.Queue = queue.Queue()

    def cancel(self) -> None:
        """Stop issuing requests. In-flight work finishes; nothing is undone."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def run(self, identifiers) -> LookupOutcome:
        """Process ``identifiers`` in order and block until done or cancelled."""
        identifiers = list(identifiers)
        outcome = LookupOutcome()
        for ident in identifiers:
            self._queue.put(ident)
        self._queue.put(_STOP)

        pbar = tqdm(total=len(identifiers), unit="star", desc="Simbad", disable=not self.progress)
        errors: list[BaseException] = []
        worker = threading.Thread(target=self._work_safely, args=(outcome, pbar, errors), daemon=True)
        worker.start()
        try:
            worker.join()
        finally:
            pbar.close()
        if errors:
            raise errors[0]

        # Whatever is left behind a cancellation is reported, not retried.
        while True:
            try:
                ident = self._queue.get_nowait()
            except queue.Empty:
                break
            if ident is not _STOP:
                outcome.failures[ident] = "cancelled"
        outcome.cancelled = self.cancelled
        return outcome

    def _work_safely(self, outcome: LookupOutcome, pbar, errors: list) -> None:
        try:
            self._work(outcome, pbar)
        except Exception as e:
            errors.append(e)

    def _work(self, outcome: LookupOutcome, pbar) -> None:
        first = True
        while not self._cancel.is_set():
            ident = self._queue.get()
            if ident is _STOP:
                return
            if not first and self.delay_sec > 0:
                self.sleep(self.delay_sec, self._cancel)
                if self._cancel.is_set():
                    outcome.failures[ident] = "cancelled"
                    return
            first = False

            try:
                entry = self.lookup(ident)
            except RemoteLookupTimeout as e:
                logger.warning("%s", e)
                outcome.failures[ident] = "timeout"
            except RemoteLookupError as e:
                logger.warning("%s", e)
                outcome.failures[ident] = "unavailable"
            else:
                if entry is None:
                    outcome.failures[ident] = "not found"
                else:
                    outcome.results[ident] = entry
            pbar.update(1)


def _wait_on_event(seconds: float, cancel_event: threading.Event) -> None:
    cancel_event.wait(seconds)


def make_queue_factory(
    *,
    delay_sec: float = SIMBAD_QUERY_DELAY_SEC,
    sleep=None,
    progress: bool = False,
    cancel_event: threading.Event | None = None,
):
    """Return ``lookup -> RateLimitedLookupQueue`` for the resolver.

    Every queue built by the factory shares ``cancel_event``.
    """

    def factory(lookup):
        return RateLimitedLookupQueue(
            lookup, delay_sec=delay_sec, sleep=sleep, progress=progress, cancel_event=cancel_event
        )

    return factory
