"""Leading-edge debounce gate.

A :class:`DebounceGate` wraps an *apply* function so that a burst of
calls collapses to a single application: the **first** call of a burst
is applied immediately, every further call within ``delay``
milliseconds of the previous one is absorbed, and no trailing
application is made when the burst ends.

State machine
~~~~~~~~~~~~~

::

    idle ──call(v)──▶ apply(v) ──▶ pending(v, timer)
    pending ──call(v)──▶ pending(v, restarted timer)
    pending ──timer fires──▶ idle

Without a running event loop no window can be timed, so every call is
applied and the gate stays idle.

Bypass
~~~~~~

When ``delay`` is ``None`` or not a real number the gate is bypassed
and every call is applied synchronously, one-to-one, in order.

The window timer is injected via *scheduler* so tests can drive time by
hand; by default the running asyncio loop's ``call_later`` is used.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import numbers
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    """The part of :class:`asyncio.TimerHandle` the gate relies on."""

    def cancel(self) -> None:
        ...


#: ``scheduler(delay_seconds, callback) -> TimerHandle``, or ``None`` when
#: no timer can be started.
Scheduler = Callable[[float, Callable[[], None]], Optional[TimerHandle]]


def _loop_scheduler(
    delay: float, callback: Callable[[], None]
) -> Optional[TimerHandle]:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return None
    return loop.call_later(delay, callback)


def is_delay(value: Any) -> bool:
    """Return ``True`` if *value* is usable as a debounce delay."""
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


class GateState(enum.Enum):
    """States of a :class:`DebounceGate`."""

    IDLE = "idle"
    PENDING = "pending"


class DebounceGate:
    """Leading-edge debounce around a one-argument *apply* function.

    Parameters
    ----------
    delay:
        Window in milliseconds.  ``None`` or a non-number bypasses the
        gate.
    apply:
        Called with the value of the first call of every burst.
    scheduler:
        Timer factory; defaults to the running loop's ``call_later``.
    """

    def __init__(
        self,
        delay: Any,
        apply: Callable[[Any], None],
        *,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self._delay = delay if is_delay(delay) else None
        self._apply = apply
        self._scheduler: Scheduler = scheduler or _loop_scheduler
        self._state = GateState.IDLE
        self._last_value: Any = None
        self._timer: Optional[TimerHandle] = None

    # ---- read-only accessors -----------------------------------------

    @property
    def delay(self) -> Optional[float]:
        """Window in milliseconds, ``None`` when bypassed."""
        return self._delay

    @property
    def bypassed(self) -> bool:
        """``True`` if calls are applied without debouncing."""
        return self._delay is None

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def last_value(self) -> Any:
        """Most recent value seen during the current burst."""
        return self._last_value

    # ---- calls -------------------------------------------------------

    def __call__(self, value: Any) -> None:
        if self._delay is None:
            self._apply(value)
            return

        if self._state is GateState.PENDING:
            logger.debug("Debounced value %r within %sms window", value, self._delay)
            self._last_value = value
            if not self._restart_timer():
                self._reset()
            return

        if self._restart_timer():
            self._state = GateState.PENDING
            self._last_value = value
        else:
            logger.debug("No timer available, applying %r without a window", value)
        self._apply(value)

    def cancel(self) -> None:
        """Drop any pending burst and return to idle."""
        if self._timer is not None:
            self._timer.cancel()
        self._reset()

    # ---- timer -------------------------------------------------------

    def _restart_timer(self) -> bool:
        """(Re-)start the window.  Returns ``False`` if no timer started."""
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._scheduler(self._delay / 1000.0, self._on_window_elapsed)
        return self._timer is not None

    def _on_window_elapsed(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._timer = None
        self._state = GateState.IDLE
        self._last_value = None

    def __repr__(self) -> str:
        return f"DebounceGate(delay={self._delay!r}, state={self._state.value})"
