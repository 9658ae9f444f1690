"""
Event types and the time-ordered event queue used by the move-up simulator.
"""

import heapq
from enum import Enum
from typing import List, Optional, Set, Tuple


class EventType(Enum):
    """All event kinds the simulator knows how to handle."""
    AMB_WAKES_UP = "amb_wakes_up"
    AMB_GOES_TO_SLEEP = "amb_goes_to_sleep"
    CALL_ARRIVES = "call_arrives"
    CONSIDER_DISPATCH = "consider_dispatch"
    AMB_DISPATCHED = "amb_dispatched"
    AMB_MOBILISED = "amb_mobilised"
    AMB_REACHES_CALL = "amb_reaches_call"
    AMB_GOES_TO_HOSPITAL = "amb_goes_to_hospital"
    AMB_REACHES_HOSPITAL = "amb_reaches_hospital"
    AMB_BECOMES_FREE = "amb_becomes_free"
    AMB_RETURNS_TO_STATION = "amb_returns_to_station"
    AMB_REACHES_STATION = "amb_reaches_station"
    CONSIDER_MOVE_UP = "consider_move_up"
    AMB_MOVES_UP_TO_STATION = "amb_moves_up_to_station"


class Event:
    """
    A single scheduled event.

    The ambulance, call and station references are optional and depend on the
    event kind. ``parent`` points at the event whose handling created this one.
    """

    def __init__(self, event_type: EventType, time: float, *,
                 ambulance=None, call=None, station=None,
                 parent: Optional["Event"] = None) -> None:
        self.event_type = event_type
        self.time = float(time)
        self.ambulance = ambulance
        self.call = call
        self.station = station
        self.parent = parent
        self.index: int = -1  # assigned by the queue

    def __repr__(self) -> str:
        parts = [f"{self.event_type.value}", f"t={self.time:.3f}"]
        if self.ambulance is not None:
            parts.append(f"amb={self.ambulance.index}")
        if self.call is not None:
            parts.append(f"call={self.call.index}")
        if self.station is not None:
            parts.append(f"station={self.station.index}")
        return f"Event({', '.join(parts)})"


class EventQueue:
    """
    Min-heap of events keyed on ``(time, insertion order)``.

    Events at equal times are popped in the order they were pushed. Cancelled
    events stay in the heap and are skipped when they reach the top.
    """

    def __init__(self) -> None:
        self._heap: List[Tuple[float, int, Event]] = []
        self._counter = 0
        self._cancelled: Set[int] = set()
        self.last_time = float("-inf")

    def __len__(self) -> int:
        return len(self._heap) - len(self._cancelled)

    def __bool__(self) -> bool:
        return len(self) > 0

    def push(self, event: Event) -> Event:
        event.index = self._counter
        heapq.heappush(self._heap, (event.time, self._counter, event))
        self._counter += 1
        return event

    def cancel(self, event: Event) -> None:
        if event.index < 0:
            raise ValueError(f"{event!r} was never queued")
        self._cancelled.add(event.index)

    def is_cancelled(self, event: Event) -> bool:
        return event.index in self._cancelled

    def _drop_cancelled(self) -> None:
        while self._heap and self._heap[0][1] in self._cancelled:
            _, event_id, _ = heapq.heappop(self._heap)
            self._cancelled.remove(event_id)

    def peek(self) -> Optional[Event]:
        self._drop_cancelled()
        if not self._heap:
            return None
        return self._heap[0][2]

    def pop(self) -> Event:
        self._drop_cancelled()
        if not self._heap:
            raise IndexError("pop from an empty event queue")
        time, _, event = heapq.heappop(self._heap)
        assert time >= self.last_time, \
            f"Event {event!r} is earlier than the last dispatched time {self.last_time}"
        self.last_time = time
        return event

    def events(self) -> List[Event]:
        """Pending events in dispatch order."""
        return [e for _, eid, e in sorted(self._heap) if eid not in self._cancelled]
