import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from db.database import Database
from errors import PersistenceError, ValidationError
from hub.broadcast import Broadcaster

logger = logging.getLogger(__name__)

TIMER_UPDATE = "timer_update"
TIMER_RESET = "timer_reset"
TIMER_STATE = "timer_state"


@dataclass(frozen=True)
class TimerState:
    is_running: bool = False
    remaining_time: int = 300
    total_time: int = 300
    current_speaker: str = ""
    last_update: str = ""

    @classmethod
    def from_row(cls, row: dict) -> "TimerState":
        return cls(
            is_running=bool(row["is_running"]),
            remaining_time=row["remaining_time"],
            total_time=row["total_time"],
            current_speaker=row["current_speaker"] or "",
            last_update=row["last_update"],
        )

    def to_dict(self) -> dict:
        return {
            "isRunning": self.is_running,
            "remainingTime": self.remaining_time,
            "totalTime": self.total_time,
            "currentSpeaker": self.current_speaker,
            "lastUpdate": self.last_update,
        }


SQLITE_MIN_INT = -(2 ** 63)
SQLITE_MAX_INT = 2 ** 63 - 1


def positive_int(value, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a positive integer")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str) and value.strip().isdigit():
        try:
            value = int(value.strip())
        except ValueError:
            raise ValidationError(f"{field} must be a positive integer") from None
    if not isinstance(value, int) or not 0 < value <= SQLITE_MAX_INT:
        raise ValidationError(f"{field} must be a positive integer")
    return value


def _as_int(value, field: str) -> int:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be an integer")
    try:
        value = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{field} must be an integer") from None
    if not SQLITE_MIN_INT <= value <= SQLITE_MAX_INT:
        raise ValidationError(f"{field} is out of range")
    return value


class TimerService:
    """Owns the shared countdown timer.

    Every action runs under one lock: read the current state, compute the
    next one, persist it, then swap it in and publish it. A failed write
    leaves the in-memory state untouched and publishes nothing.

    While running, a single driver task calls tick() every `tick_interval`
    seconds. pause/reset cancel it; tick() re-checks is_running under the
    lock so an in-flight tick cannot land after a pause or reset.
    """

    def __init__(self, db: Database, broadcaster: Broadcaster, tick_interval: float = 1.0):
        self.db = db
        self.broadcaster = broadcaster
        self.tick_interval = tick_interval
        self._lock = asyncio.Lock()
        self._driver: asyncio.Task | None = None
        self._state = TimerState.from_row(db.get_timer_state())

    def snapshot(self) -> TimerState:
        return self._state

    # -- Actions --

    async def start(self) -> TimerState:
        async with self._lock:
            state = self._commit(replace(self._state, is_running=True), TIMER_UPDATE)
            self._ensure_driver()
        logger.info("Timer started (%ds left)", state.remaining_time)
        return state

    async def pause(self) -> TimerState:
        async with self._lock:
            state = self._commit(replace(self._state, is_running=False), TIMER_UPDATE)
            self._stop_driver()
        logger.info("Timer paused (%ds left)", state.remaining_time)
        return state

    async def reset(self, total_time=None) -> TimerState:
        async with self._lock:
            total = self._state.total_time if total_time is None else positive_int(total_time, "total_time")
            state = self._commit(
                replace(self._state, is_running=False, total_time=total,
                        remaining_time=total, current_speaker=""),
                TIMER_RESET,
            )
            self._stop_driver()
        logger.info("Timer reset to %ds", state.total_time)
        return state

    async def set_total_time(self, seconds) -> TimerState:
        seconds = positive_int(seconds, "seconds")
        async with self._lock:
            current = self._state
            if current.is_running:
                nxt = replace(current, total_time=seconds)
            else:
                nxt = replace(current, total_time=seconds, remaining_time=seconds)
            return self._commit(nxt, TIMER_UPDATE)

    async def set_speaker(self, name) -> TimerState:
        name = "" if name is None else str(name)
        async with self._lock:
            return self._commit(replace(self._state, current_speaker=name), TIMER_UPDATE)

    async def tick(self) -> TimerState:
        async with self._lock:
            current = self._state
            if not current.is_running or current.remaining_time <= 0:
                return current
            return self._commit(
                replace(current, remaining_time=current.remaining_time - 1), TIMER_UPDATE
            )

    async def replace_full(self, is_running, remaining_time, total_time, current_speaker) -> TimerState:
        """Overwrite every field as given. Values are not cross-checked."""
        nxt = TimerState(
            is_running=bool(is_running),
            remaining_time=_as_int(remaining_time, "remaining_time"),
            total_time=_as_int(total_time, "total_time"),
            current_speaker="" if current_speaker is None else str(current_speaker),
        )
        async with self._lock:
            state = self._commit(nxt, TIMER_UPDATE)
            if state.is_running:
                self._ensure_driver()
            else:
                self._stop_driver()
        return state

    async def apply(self, action: str, value=None) -> TimerState:
        """Dispatch a realtime `timer_control` action."""
        if action == "start":
            return await self.start()
        if action == "pause":
            return await self.pause()
        if action == "reset":
            return await self.reset()
        if action == "set_time":
            return await self.set_total_time(value)
        if action == "set_speaker":
            return await self.set_speaker(value)
        if action == "tick":
            return await self.tick()
        raise ValidationError(f"Unknown timer action: {action!r}")

    # -- Internals --

    def _commit(self, state: TimerState, event: str) -> TimerState:
        state = replace(state, last_update=datetime.now(timezone.utc).isoformat())
        try:
            self.db.save_timer_state(
                state.is_running, state.remaining_time, state.total_time,
                state.current_speaker, state.last_update,
            )
        except PersistenceError as e:
            logger.error("Failed to persist timer state: %s", e)
            raise
        self._state = state
        self.broadcaster.publish(event, state.to_dict())
        return state

    def _ensure_driver(self):
        if self.tick_interval <= 0:
            return
        if self._driver is None or self._driver.done():
            self._driver = asyncio.create_task(self._drive())

    def _stop_driver(self):
        if self._driver is not None and not self._driver.done():
            self._driver.cancel()
        self._driver = None

    async def _drive(self):
        while True:
            await asyncio.sleep(self.tick_interval)
            try:
                state = await self.tick()
            except PersistenceError:
                logger.error("Timer driver stopped after a failed tick")
                return
            if not state.is_running or state.remaining_time <= 0:
                logger.info("Timer driver finished (%ds left)", state.remaining_time)
                return

    def resume(self):
        """Restart the driver for a timer restored in the running state."""
        if self._state.is_running and self._state.remaining_time > 0:
            self._ensure_driver()

    async def shutdown(self):
        driver = self._driver
        self._stop_driver()
        if driver is not None:
            try:
                await driver
            except asyncio.CancelledError:
                pass
