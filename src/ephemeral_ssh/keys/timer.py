"""
One-shot deferred deletion of key pairs

A LifecycleTimer schedules a single call to a key pair's ``delete`` after a
time-to-live. The duration is a lower bound: the callback never runs early,
but may run late under scheduler contention. Schedulers are pluggable so that
tests can drive a virtual clock instead of waiting on real time.
"""

import heapq
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple

from ..exceptions import EphemeralSSHError, ValidationError

logger = logging.getLogger(__name__)


def validate_ttl_ms(ttl_ms: int) -> int:
    """
    Validate a time-to-live in milliseconds

    Raises:
        ValidationError: If ttl_ms is not a non-negative integer
    """
    if isinstance(ttl_ms, bool) or not isinstance(ttl_ms, int):
        raise ValidationError(
            "Time-to-live must be an integer number of milliseconds",
            "INVALID_TTL_TYPE",
            {"ttl_ms": repr(ttl_ms)}
        )
    if ttl_ms < 0:
        raise ValidationError(
            f"Time-to-live must not be negative: {ttl_ms}",
            "NEGATIVE_TTL",
            {"ttl_ms": ttl_ms}
        )
    return ttl_ms


class ScheduledCall(ABC):
    """Handle to a callback registered with a Scheduler"""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from running if it has not run yet"""


class Scheduler(ABC):
    """Runs callbacks after a delay"""

    @abstractmethod
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> ScheduledCall:
        """Run callback once, no sooner than delay_ms from now"""


class _ThreadingCall(ScheduledCall):

    def __init__(self, timer: threading.Timer):
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadingScheduler(Scheduler):
    """Scheduler backed by ``threading.Timer`` and the real clock"""

    def __init__(self, daemon: bool = True):
        self.daemon = daemon

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> ScheduledCall:
        timer = threading.Timer(delay_ms / 1000.0, callback)
        timer.daemon = self.daemon
        timer.start()
        return _ThreadingCall(timer)


class _ManualCall(ScheduledCall):

    def __init__(self, due_ms: int, callback: Callable[[], None]):
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True
        self.callback = None


class ManualScheduler(Scheduler):
    """
    Scheduler driven by a virtual clock

    Nothing runs until ``advance`` moves the clock past a callback's due time.
    Callbacks run on the thread calling ``advance``, in due-time order.
    """

    def __init__(self, start_ms: int = 0):
        self.now_ms = start_ms
        self._queue: List[Tuple[int, int, _ManualCall]] = []
        self._sequence = itertools.count()

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> ScheduledCall:
        call = _ManualCall(self.now_ms + delay_ms, callback)
        heapq.heappush(self._queue, (call.due_ms, next(self._sequence), call))
        return call

    @property
    def pending_count(self) -> int:
        """Number of scheduled callbacks that have neither run nor been cancelled"""
        return sum(1 for _, _, call in self._queue if not call.cancelled)

    def advance(self, ms: int) -> int:
        """
        Move the virtual clock forward and run every callback that became due

        Returns:
            int: Number of callbacks run
        """
        if ms < 0:
            raise ValueError("Cannot move the clock backwards")

        target = self.now_ms + ms
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due_ms, _, call = heapq.heappop(self._queue)
            if call.cancelled:
                continue
            self.now_ms = due_ms
            callback, call.callback = call.callback, None
            callback()
            ran += 1
        self.now_ms = target
        return ran


class LifecycleTimer:
    """
    A single pending deletion bound to one key pair

    The timer holds the callback only until it fires or is cancelled, so a
    deleted key pair is not kept alive by its timer. Fire and cancel are
    serialized; the callback runs at most once.
    """

    def __init__(self, callback: Callable[[], None], ttl_ms: int,
                 scheduler: Optional[Scheduler] = None):
        """
        Create an unarmed timer

        Args:
            callback: Called once when the time-to-live elapses
            ttl_ms: Delay in milliseconds
            scheduler: Scheduler to use (defaults to ThreadingScheduler)
        """
        self.ttl_ms = validate_ttl_ms(ttl_ms)
        self.scheduler = scheduler or ThreadingScheduler()
        self._callback: Optional[Callable[[], None]] = callback
        self._call: Optional[ScheduledCall] = None
        self._lock = threading.Lock()
        self._fired = False
        self._cancelled = False

    @classmethod
    def arm(cls, key_pair, ttl_ms: int, scheduler: Optional[Scheduler] = None) -> 'LifecycleTimer':
        """Schedule ``key_pair.delete()`` after ttl_ms and return the started timer"""
        return key_pair.arm_timer(ttl_ms, scheduler)

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def pending(self) -> bool:
        """True while started and neither fired nor cancelled"""
        return self._call is not None and not (self._fired or self._cancelled)

    def start(self) -> 'LifecycleTimer':
        """Register the timer with its scheduler"""
        with self._lock:
            if self._call is not None or self._fired or self._cancelled:
                raise RuntimeError("LifecycleTimer can only be started once")
            self._call = self.scheduler.call_later(self.ttl_ms, self._fire)
        return self

    def cancel(self) -> bool:
        """
        Cancel the pending deletion

        Returns:
            bool: True if a pending deletion was cancelled
        """
        with self._lock:
            if self._fired or self._cancelled:
                return False
            self._cancelled = True
            call, self._call = self._call, None
            self._callback = None

        if call is not None:
            call.cancel()
        return True

    def _fire(self) -> None:
        with self._lock:
            if self._fired or self._cancelled:
                return
            self._fired = True
            callback, self._callback = self._callback, None
            self._call = None

        try:
            callback()
        except (EphemeralSSHError, OSError) as e:
            logger.warning(f"Scheduled key deletion failed: {e}")
