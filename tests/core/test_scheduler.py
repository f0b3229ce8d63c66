"""Tests for PollScheduler: overlap guard, error isolation and lifecycle."""

import threading

import pytest

from velib_exporter.core.scheduler import PollScheduler


def test_add_job_validation():
    s = PollScheduler()
    with pytest.raises(ValueError):
        s.add_job("a", 0, lambda: None)
    s.add_job("a", 1, lambda: None)
    with pytest.raises(ValueError):
        s.add_job("a", 1, lambda: None)


def test_run_job_executes_once():
    calls = []
    s = PollScheduler()
    s.add_job("stats", 60, lambda: calls.append(1))
    assert s.run_job("stats") is True
    assert calls == [1]
    assert s.jobs["stats"].runs == 1


def test_tick_skipped_while_previous_run_in_flight():
    """No máximo uma execução em curso por grupo: o tick concorrente é ignorado."""
    started = threading.Event()
    release = threading.Event()
    calls = []

    def slow():
        calls.append(1)
        started.set()
        release.wait(5)

    s = PollScheduler()
    s.add_job("rides", 60, slow)
    t = threading.Thread(target=s.run_job, args=("rides",))
    t.start()
    assert started.wait(5)

    assert s.run_job("rides") is False
    release.set()
    t.join(5)

    assert calls == [1]
    assert s.jobs["rides"].skipped == 1
    # lock libertado: próximo tick corre normalmente
    assert s.run_job("rides") is True


def test_groups_are_independent():
    """Um job em curso não bloqueia outro grupo."""
    release = threading.Event()
    other = []
    s = PollScheduler()
    s.add_job("slow", 60, lambda: release.wait(5))
    s.add_job("fast", 60, lambda: other.append(1))
    t = threading.Thread(target=s.run_job, args=("slow",))
    t.start()
    try:
        assert s.run_job("fast") is True
        assert other == [1]
    finally:
        release.set()
        t.join(5)


def test_job_exception_is_logged_not_raised(caplog):
    def broken():
        raise RuntimeError("boom")

    s = PollScheduler()
    s.add_job("broken", 60, broken)
    assert s.run_job("broken") is True
    assert any("broken" in r.getMessage() for r in caplog.records)
    # lock não fica preso após exceção
    assert s.run_job("broken") is True


def test_start_runs_immediately_and_stop_joins():
    """A primeira execução acontece no arranque; stop() termina as threads."""
    ran = threading.Event()
    s = PollScheduler()
    s.add_job("stats", 3600, ran.set)
    s.start()
    try:
        assert ran.wait(5)
    finally:
        s.stop()
    assert s.wait(0) is True


def test_worker_repeats_on_interval():
    count = {"n": 0}
    done = threading.Event()

    def tick():
        count["n"] += 1
        if count["n"] >= 3:
            done.set()

    s = PollScheduler()
    s.add_job("fast", 0.01, tick)
    s.start()
    try:
        assert done.wait(5)
    finally:
        s.stop()
    assert count["n"] >= 3


def test_worker_skips_missed_ticks():
    """Ticks ultrapassados por uma execução longa não são recuperados."""
    now = {"t": 0.0}
    runs = []
    s = PollScheduler(clock=lambda: now["t"])

    def long_run():
        runs.append(now["t"])
        # execução dura 3.5 intervalos
        now["t"] += 35.0
        if len(runs) >= 2:
            s._stop.set()

    s.add_job("stats", 10, long_run)
    original_wait = s._stop.wait
    waits = []

    def fake_wait(timeout=None):
        waits.append(timeout)
        if timeout:
            now["t"] += timeout
        return original_wait(0)

    s._stop.wait = fake_wait
    s._worker(s.jobs["stats"])

    assert runs == [0.0, 40.0]
    assert waits[0] == pytest.approx(5.0)
