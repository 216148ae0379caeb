"""Bounded log tailing with a concurrent stimulus schedule.

The tail loop reads a line stream for a fixed wall-clock window while a
background thread fires a short, ordered list of delayed calls at the system
being observed, so that there is something to read.
"""

import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Protocol

logger = logging.getLogger(__name__)


class LineStream(Protocol):
    def readline(self) -> Optional[str]:
        ...

    def close(self) -> None:
        ...


@dataclass(frozen=True)
class Stimulus:
    """One step of a stimulus schedule.

    ``delay`` seconds are waited before ``action`` is called, counted from the
    moment the previous step's action returned.
    """

    delay: float
    action: Callable[[], Any]
    name: str = ""


class TailOutcome(enum.Enum):
    DRAINED = "drained"
    EXPIRED = "expired"
    FAILED = "failed"


def run_schedule(schedule: Iterable[Stimulus], stop_event: threading.Event) -> None:
    """Run the schedule in order on the calling thread until done or stopped."""
    for index, step in enumerate(schedule):
        label = step.name or f"step {index + 1}"
        if stop_event.wait(step.delay):
            logger.debug("Stimulus schedule stopped before %s", label)
            return
        logger.debug("Running stimulus %s", label)
        try:
            step.action()
        except Exception:
            logger.exception("Stimulus %s failed", label)
    logger.debug("Stimulus schedule finished")


def start_schedule(schedule: Iterable[Stimulus], stop_event: threading.Event) -> threading.Thread:
    # Copied so the caller can reuse its list while the thread iterates.
    steps: List[Stimulus] = list(schedule)
    worker = threading.Thread(
        target=run_schedule,
        args=(steps, stop_event),
        name="stimulus",
        daemon=True,
    )
    worker.start()
    return worker


def run_tail(
    stream: LineStream,
    schedule: Iterable[Stimulus],
    max_duration: float,
    sink: Optional[Callable[[str], Any]] = None,
    clock: Callable[[], float] = time.monotonic,
) -> TailOutcome:
    """Emit lines from ``stream`` for at most ``max_duration`` seconds.

    The schedule is started on a daemon thread once the timer is running. One
    line is always read before the deadline is checked, so a zero window still
    performs a single read. The loop ends when the stream returns ``None``
    (end of data), when the window has elapsed, or when a read raises; read
    errors are logged and reported as :attr:`TailOutcome.FAILED` rather than
    raised.

    On every exit path the schedule is told to stop (an action already in
    flight completes on its own) and the stream is closed exactly once.
    """
    if max_duration < 0:
        stream.close()
        raise ValueError("max_duration must not be negative")
    emit = sink if sink is not None else logger.info

    started = clock()
    stop_event = threading.Event()
    outcome = TailOutcome.FAILED
    try:
        start_schedule(schedule, stop_event)
        while True:
            line = stream.readline()
            if line is None:
                outcome = TailOutcome.DRAINED
                break
            emit(line)
            if clock() - started > max_duration:
                outcome = TailOutcome.EXPIRED
                break
    except Exception:
        logger.exception("Reading the log stream failed")
        outcome = TailOutcome.FAILED
    finally:
        stop_event.set()
        stream.close()
    logger.debug("Log tail ended (%s) after %.3fs", outcome.value, clock() - started)
    return outcome
