import itertools
import os
import sys
import threading
import time

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest

from funclogs_agent.tail import Stimulus, TailOutcome, run_schedule, run_tail


class FakeStream:
    def __init__(self, lines=None, endless=False, delay=0.0, fail_after=None, before_first=None):
        self.lines = list(lines or [])
        self.endless = endless
        self.delay = delay
        self.fail_after = fail_after
        self.before_first = before_first
        self.reads = 0
        self.close_count = 0

    def readline(self):
        if self.reads == 0 and self.before_first is not None:
            self.before_first()
        self.reads += 1
        if self.fail_after is not None and self.reads > self.fail_after:
            raise ConnectionError("stream reset")
        if self.delay:
            time.sleep(self.delay)
        if self.endless:
            return f"line {self.reads}"
        return self.lines.pop(0) if self.lines else None

    def close(self):
        self.close_count += 1


def step_clock(step=0.001):
    counter = itertools.count(0, step)
    return lambda: next(counter)


def test_zero_window_still_reads_once():
    stream = FakeStream(endless=True)
    out = []
    outcome = run_tail(stream, [], 0, sink=out.append, clock=step_clock())
    assert outcome is TailOutcome.EXPIRED
    assert stream.reads == 1
    assert out == ["line 1"]
    assert stream.close_count == 1


def test_zero_window_on_empty_stream_drains():
    stream = FakeStream()
    outcome = run_tail(stream, [], 0, sink=lambda line: None)
    assert outcome is TailOutcome.DRAINED
    assert stream.reads == 1
    assert stream.close_count == 1


def test_stream_end_before_window_returns_lines_in_order():
    stream = FakeStream(["a", "b", "c"])
    out = []
    started = time.monotonic()
    outcome = run_tail(stream, [], 5.0, sink=out.append)
    assert time.monotonic() - started < 5.0
    assert outcome is TailOutcome.DRAINED
    assert out == ["a", "b", "c"]
    assert stream.close_count == 1


def test_endless_stream_stops_after_window():
    stream = FakeStream(endless=True, delay=0.001)
    out = []
    started = time.monotonic()
    outcome = run_tail(stream, [], 0.05, sink=out.append)
    elapsed = time.monotonic() - started
    assert outcome is TailOutcome.EXPIRED
    assert 0.05 <= elapsed < 0.5
    assert 5 <= len(out) <= 60
    assert out[:2] == ["line 1", "line 2"]
    assert stream.close_count == 1


def test_read_error_closes_stream_and_is_not_raised():
    stream = FakeStream(endless=True, fail_after=2)
    out = []
    outcome = run_tail(stream, [], 5.0, sink=out.append)
    assert outcome is TailOutcome.FAILED
    assert out == ["line 1", "line 2"]
    assert stream.close_count == 1


def test_negative_window_rejected():
    stream = FakeStream(["a"])
    with pytest.raises(ValueError):
        run_tail(stream, [], -1)
    assert stream.reads == 0
    assert stream.close_count == 1


def test_failing_sink_ends_tail_and_closes_stream():
    stream = FakeStream(["a", "b"])

    def sink(line):
        raise BrokenPipeError("stdout closed")

    outcome = run_tail(stream, [], 5.0, sink=sink)
    assert outcome is TailOutcome.FAILED
    assert stream.reads == 1
    assert stream.close_count == 1


def test_schedule_delays_count_from_previous_completion():
    delay = 0.05
    starts = []

    def action(name, work):
        def run():
            starts.append((name, time.monotonic()))
            time.sleep(work)
        return run

    schedule = [
        Stimulus(delay, action("first", 0.02)),
        Stimulus(delay, action("second", 0.02)),
        Stimulus(delay, action("third", 0.0)),
    ]
    run_schedule(schedule, threading.Event())

    assert [name for name, _ in starts] == ["first", "second", "third"]
    t1, t2, t3 = (t for _, t in starts)
    assert t3 - t1 >= 2 * delay
    # each wait starts after the previous action returned
    assert t2 - t1 >= delay + 0.02 - 0.005
    assert t3 - t2 >= delay + 0.02 - 0.005


def test_failing_stimulus_does_not_stop_schedule():
    called = []

    def boom():
        called.append("boom")
        raise RuntimeError("503")

    schedule = [
        Stimulus(0, lambda: called.append("one")),
        Stimulus(0, boom),
        Stimulus(0, lambda: called.append("three")),
    ]
    run_schedule(schedule, threading.Event())
    assert called == ["one", "boom", "three"]


def test_stopped_schedule_runs_nothing_more():
    stop = threading.Event()
    called = []
    schedule = [
        Stimulus(0, lambda: (called.append("one"), stop.set())),
        Stimulus(0, lambda: called.append("two")),
    ]
    run_schedule(schedule, stop)
    assert called == ["one"]


def test_failing_stimulus_does_not_end_tail_early():
    called = []
    done = threading.Event()

    def boom():
        called.append("boom")
        raise RuntimeError("503")

    def last():
        called.append("last")
        done.set()

    schedule = [
        Stimulus(0, boom),
        Stimulus(0, last),
    ]
    stream = FakeStream(["x", "y"], before_first=lambda: done.wait(2))
    out = []
    outcome = run_tail(stream, schedule, 5.0, sink=out.append)
    assert called == ["boom", "last"]
    assert outcome is TailOutcome.DRAINED
    assert out == ["x", "y"]
    assert stream.close_count == 1


def test_tail_exit_stops_pending_stimuli():
    called = []
    schedule = [Stimulus(10, lambda: called.append("late"))]
    outcome = run_tail(FakeStream(["only"]), schedule, 5.0, sink=lambda line: None)
    assert outcome is TailOutcome.DRAINED
    time.sleep(0.05)
    assert called == []
