import pytest

from polygraph.scheduler import ManualScheduler


def test_call_later_fires_once_when_due() -> None:
    scheduler = ManualScheduler()
    fired: list[float] = []
    scheduler.call_later(100, lambda: fired.append(scheduler.now()))
    scheduler.advance(99)
    assert fired == []
    scheduler.advance(1)
    assert fired == [100.0]
    scheduler.advance(1000)
    assert fired == [100.0]
    assert scheduler.pending == 0


def test_call_every_fires_per_interval() -> None:
    scheduler = ManualScheduler()
    ticks: list[float] = []
    scheduler.call_every(16, lambda: ticks.append(scheduler.now()))
    scheduler.advance(160)
    assert len(ticks) == 10
    assert ticks[:3] == [16.0, 32.0, 48.0]


def test_cancelled_timers_never_fire() -> None:
    scheduler = ManualScheduler()
    fired: list[str] = []
    once = scheduler.call_later(50, lambda: fired.append("once"))
    every = scheduler.call_every(10, lambda: fired.append("every"))
    once.cancel()
    scheduler.advance(25)
    every.cancel()
    every.cancel()
    scheduler.advance(100)
    assert fired == ["every", "every"]
    assert not once.active
    assert not every.active
    assert scheduler.pending == 0


def test_timers_fire_in_due_order() -> None:
    scheduler = ManualScheduler()
    order: list[str] = []
    scheduler.call_later(30, lambda: order.append("c"))
    scheduler.call_later(10, lambda: order.append("a"))
    scheduler.call_later(10, lambda: order.append("b"))
    scheduler.advance(30)
    assert order == ["a", "b", "c"]


def test_timer_cancelled_by_earlier_callback() -> None:
    scheduler = ManualScheduler()
    fired: list[str] = []
    late = scheduler.call_later(20, lambda: fired.append("late"))
    scheduler.call_later(10, late.cancel)
    scheduler.advance(50)
    assert fired == []


def test_timers_scheduled_during_advance() -> None:
    scheduler = ManualScheduler()
    fired: list[float] = []

    def first() -> None:
        scheduler.call_later(5, lambda: fired.append(scheduler.now()))

    scheduler.call_later(10, first)
    scheduler.advance(20)
    assert fired == [15.0]
    assert scheduler.now() == 20.0


def test_interval_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ManualScheduler().call_every(0, lambda: None)
