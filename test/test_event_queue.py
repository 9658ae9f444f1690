import pytest

from ems_moveup.simulator.events import Event, EventQueue, EventType


def test_equal_times_pop_in_insertion_order():
    queue = EventQueue()
    first = queue.push(Event(EventType.CALL_ARRIVES, 5.0))
    second = queue.push(Event(EventType.CONSIDER_DISPATCH, 5.0))
    earliest = queue.push(Event(EventType.AMB_WAKES_UP, 1.0))

    assert [queue.pop(), queue.pop(), queue.pop()] == [earliest, first, second]
    assert not queue


def test_cancelled_events_are_skipped():
    queue = EventQueue()
    a = queue.push(Event(EventType.AMB_REACHES_STATION, 2.0))
    b = queue.push(Event(EventType.AMB_REACHES_CALL, 3.0))
    queue.cancel(a)

    assert len(queue) == 1
    assert queue.is_cancelled(a)
    assert queue.peek() is b
    assert queue.pop() is b
    assert queue.peek() is None


def test_events_lists_pending_in_order():
    queue = EventQueue()
    late = queue.push(Event(EventType.CALL_ARRIVES, 9.0))
    early = queue.push(Event(EventType.CALL_ARRIVES, 1.0))
    middle = queue.push(Event(EventType.CALL_ARRIVES, 4.0))
    queue.cancel(middle)
    assert queue.events() == [early, late]


def test_pop_earlier_than_last_time_fails():
    queue = EventQueue()
    queue.push(Event(EventType.CALL_ARRIVES, 5.0))
    queue.pop()
    queue.push(Event(EventType.CALL_ARRIVES, 3.0))
    with pytest.raises(AssertionError):
        queue.pop()


def test_pop_empty_and_cancel_unqueued():
    queue = EventQueue()
    with pytest.raises(IndexError):
        queue.pop()
    with pytest.raises(ValueError):
        queue.cancel(Event(EventType.CALL_ARRIVES, 1.0))
