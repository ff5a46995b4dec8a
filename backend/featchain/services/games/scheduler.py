import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

TimerCallback = Callable[[str, int], object]


class TurnTimer:
    """One pending turn deadline. Firing after cancel() is a no-op."""

    def __init__(self, entity_id: str, epoch: int, deadline: float, callback: TimerCallback,
                 scheduler: Optional["TurnScheduler"] = None):
        self.entity_id = entity_id
        self.scheduler = scheduler
        self.epoch = epoch
        self.deadline = deadline
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def is_current(self) -> bool:
        """Still the live timer of its entity."""
        if not self.active:
            return False
        return self.scheduler is None or self.scheduler.pending(self.entity_id) is self

    def fire(self):
        if not self.active:
            return None
        self.fired = True
        return self.callback(self.entity_id, self.epoch)

    def __repr__(self):
        return f"<TurnTimer {self.entity_id} epoch={self.epoch} deadline={self.deadline:.3f}>"


class TurnScheduler:
    """Keeps at most one live deadline timer per game or run.

    Each timer runs as a Socket.IO background task that sleeps until the
    deadline and then hands ``(entity_id, epoch)`` to its callback. The
    callback re-checks the entity, so a timer that loses a race with a
    move is harmless. With ``enabled=False`` nothing is started and
    timers only fire through :meth:`fire_due`.
    """

    def __init__(self, start_task: Optional[Callable] = None, sleep: Optional[Callable[[float], None]] = None,
                 clock: Callable[[], float] = time.time, heartbeat: float = 0, enabled: bool = True):
        if start_task is None or sleep is None:
            from featchain import socketio
            start_task = start_task or socketio.start_background_task
            sleep = sleep or socketio.sleep
        self._start_task = start_task
        self._sleep = sleep
        self.clock = clock
        self.heartbeat = heartbeat
        self.enabled = enabled
        self._timers: Dict[str, TurnTimer] = {}
        self._lock = threading.Lock()

    def schedule(self, entity_id: str, epoch: int, deadline: float, callback: TimerCallback) -> TurnTimer:
        timer = TurnTimer(entity_id, epoch, deadline, callback, scheduler=self)
        with self._lock:
            previous = self._timers.get(entity_id)
            if previous is not None:
                previous.cancel()
            self._timers[entity_id] = timer
        logger.info(
            f"[timer-set] entity={entity_id} epoch={epoch} duration={max(0.0, deadline - self.clock()):.1f}s deadline={deadline}"
        )
        if self.enabled:
            self._start_task(self._worker, timer)
        return timer

    def cancel(self, entity_id: str) -> None:
        with self._lock:
            timer = self._timers.pop(entity_id, None)
        if timer is not None:
            timer.cancel()
            logger.info(f"[timer-cancel] entity={entity_id} epoch={timer.epoch}")

    def pending(self, entity_id: str) -> Optional[TurnTimer]:
        with self._lock:
            timer = self._timers.get(entity_id)
        return timer if timer is not None and timer.active else None

    def fire_due(self, now: Optional[float] = None) -> List[object]:
        """Fire every pending timer whose deadline has passed."""
        now = self.clock() if now is None else now
        with self._lock:
            due = [t for t in self._timers.values() if t.active and t.deadline <= now]
        return [self._fire(timer) for timer in sorted(due, key=lambda t: t.deadline)]

    def _release(self, timer: TurnTimer) -> None:
        with self._lock:
            if self._timers.get(timer.entity_id) is timer:
                del self._timers[timer.entity_id]

    def _fire(self, timer: TurnTimer):
        self._release(timer)
        if not timer.active:
            logger.info(f"[timer-abort] entity={timer.entity_id} epoch={timer.epoch} superseded")
            return None
        logger.info(f"[timer-fire] entity={timer.entity_id} epoch={timer.epoch}")
        return timer.fire()

    def _worker(self, timer: TurnTimer) -> None:
        while timer.active:
            remaining = timer.deadline - self.clock()
            if remaining <= 0:
                break
            step = min(self.heartbeat, remaining) if self.heartbeat and self.heartbeat > 0 else remaining
            self._sleep(step)
            if self.heartbeat and timer.active:
                logger.info(
                    f"[timer-heartbeat] entity={timer.entity_id} epoch={timer.epoch} "
                    f"remaining={max(0.0, timer.deadline - self.clock()):.1f}s"
                )
        try:
            self._fire(timer)
        except Exception:
            logger.exception(f"[timer-error] entity={timer.entity_id} epoch={timer.epoch}")


class EntityLocks:
    """One mutex per game or run; every state mutation happens under it."""

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def get(self, entity_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(entity_id)
            if lock is None:
                lock = self._locks[entity_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, entity_id: str, blocking: bool = True):
        """Yield True while holding the lock, or False if ``blocking`` is off and it is taken."""
        lock = self.get(entity_id)
        acquired = lock.acquire(blocking)
        try:
            yield acquired
        finally:
            if acquired:
                lock.release()

    def discard(self, entity_id: str) -> None:
        with self._guard:
            self._locks.pop(entity_id, None)
