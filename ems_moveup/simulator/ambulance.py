from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np

from ems_moveup.simulator.events import EventType


class AmbulanceStatus(Enum):
    """ Enum representing all possible states of an ambulance. """
    SLEEPING = 0  # Off shift, parked at its station
    IDLE_AT_STATION = 1  # Available for dispatch / move-up
    MOBILISING = 2  # Crew getting ready after dispatch from station
    GOING_TO_CALL = 3  # En-route to incident
    AT_CALL = 4  # Treating patient on-scene
    GOING_TO_HOSPITAL = 5  # En-route to hospital
    AT_HOSPITAL = 6  # Handing over patient
    FREE_AFTER_CALL = 7  # Finished a call, not yet heading anywhere
    RETURNING_TO_STATION = 8  # Heading back to its station
    MOVING_UP_TO_STATION = 9  # Relocating to a new station


BUSY_STATUSES = (
    AmbulanceStatus.MOBILISING,
    AmbulanceStatus.GOING_TO_CALL,
    AmbulanceStatus.AT_CALL,
    AmbulanceStatus.GOING_TO_HOSPITAL,
    AmbulanceStatus.AT_HOSPITAL,
)

GOING_TO_STATION_STATUSES = (
    AmbulanceStatus.RETURNING_TO_STATION,
    AmbulanceStatus.MOVING_UP_TO_STATION,
)


class AmbulanceClass(Enum):
    ALS = 1  # advanced life support
    BLS = 2  # basic life support


class Route:
    """
    Path an ambulance follows through the road network.

    ``arrival_times[i]`` is the time the ambulance reaches ``path[i]`` and
    ``cum_lengths[i]`` the distance driven on this route by then. A stationary
    ambulance has a single-node route.
    """

    def __init__(self, path: List[int], arrival_times: List[float],
                 cum_lengths: List[float], start_time: float) -> None:
        self.path = list(path)
        self.arrival_times = [float(t) for t in arrival_times]
        self.cum_lengths = [float(d) for d in cum_lengths]
        self.start_time = float(start_time)

    @classmethod
    def stationary(cls, node: int, time: float) -> "Route":
        return cls([node], [time], [0.0], time)

    @classmethod
    def plan(cls, network, from_node: int, to_node: int, start_time: float,
             depart_time: Optional[float] = None) -> "Route":
        """Shortest route leaving ``from_node`` at ``depart_time`` (defaults to ``start_time``)."""
        depart_time = start_time if depart_time is None else depart_time
        path = network.path(from_node, to_node)
        arrival_times = [depart_time]
        cum_lengths = [0.0]
        for u, v in zip(path[:-1], path[1:]):
            arrival_times.append(arrival_times[-1] + network.edge_travel_time(u, v))
            cum_lengths.append(cum_lengths[-1] + network.edge_length(u, v))
        return cls(path, arrival_times, cum_lengths, start_time)

    @property
    def end_node(self) -> int:
        return self.path[-1]

    @property
    def end_time(self) -> float:
        return self.arrival_times[-1]

    @property
    def length(self) -> float:
        return self.cum_lengths[-1]

    def next_node(self, time: float) -> Tuple[int, float, int]:
        """
        First node on the path reached at or after ``time``.

        Returns (node, arrival time at node, index in path). Once the route is
        finished this is the end node.
        """
        for i, t in enumerate(self.arrival_times):
            if t >= time:
                return self.path[i], t, i
        last = len(self.path) - 1
        return self.path[last], self.arrival_times[last], last


class Ambulance:
    """
    Represents an ambulance unit with its current state and properties.

    All state changes go through the transition methods below; the simulator
    calls them and schedules the follow-up events they imply.
    """
    def __init__(self,
                 amb_index: int,
                 station_index: int,
                 *,
                 amb_class: AmbulanceClass = AmbulanceClass.ALS,
                 shifts: Optional[List[Tuple[float, float]]] = None) -> None:

        self.index = amb_index
        self.amb_class = amb_class
        self.station_index = station_index
        self.status = AmbulanceStatus.SLEEPING
        self.shifts = sorted(shifts) if shifts else []
        self.shift_index = 0
        self.sleep_pending = False

        # Call specific
        self.call = None

        # Route / scheduling specific
        self.route: Optional[Route] = None
        self.event = None  # pending ambulance event (at most one)

        # Statistics
        self.num_dispatches = 0
        self.num_relocations = 0
        self.distance_traveled = 0.0
        self.status_durations: Dict[AmbulanceStatus, float] = {s: 0.0 for s in AmbulanceStatus}
        self.status_set_time = 0.0
        self.accounting_closed = False

    def __repr__(self) -> str:
        return f"Ambulance({self.index}, station={self.station_index}, status={self.status.name})"

    # ---------------------------------------------------------------------
    # Status bookkeeping
    # ---------------------------------------------------------------------

    def set_status(self, status: AmbulanceStatus, time: float) -> None:
        """Change status, closing the duration interval of the previous one."""
        assert time >= self.status_set_time, \
            f"Ambulance {self.index}: status set at {time} before {self.status_set_time}"
        self.status_durations[self.status] += time - self.status_set_time
        self.status = status
        self.status_set_time = time

    def close_status_accounting(self, time: float) -> None:
        """Count the open status interval up to ``time``; called once at the end of a run."""
        if self.accounting_closed:
            return
        self.status_durations[self.status] += time - self.status_set_time
        self.status_set_time = time
        self.accounting_closed = True

    def reset_accounting(self, time: float) -> None:
        self.status_durations = {s: 0.0 for s in AmbulanceStatus}
        self.status_set_time = time
        self.accounting_closed = False

    # ---------------------------------------------------------------------
    # Position helpers
    # ---------------------------------------------------------------------

    def location(self, time: float) -> Tuple[int, float]:
        """Node the ambulance is at or is about to reach, and when it gets there."""
        node, arrival, _ = self.route.next_node(time)
        return node, max(arrival, time)

    def _travel(self, network, to_node: int, time: float) -> float:
        """Abandon the current route at its next node and plan a new one to ``to_node``."""
        node, depart, i = self.route.next_node(time)
        self.distance_traveled += self.route.cum_lengths[i]
        self.route = Route.plan(network, node, to_node, time, depart_time=max(depart, time))
        return self.route.end_time

    def _arrive(self, time: float) -> None:
        node = self.route.end_node
        self.distance_traveled += self.route.length
        self.route = Route.stationary(node, time)

    @property
    def is_dispatch_pending(self) -> bool:
        return self.event is not None and self.event.event_type == EventType.AMB_DISPATCHED

    def is_busy(self) -> bool:
        return self.status in BUSY_STATUSES

    def is_dispatchable(self) -> bool:
        if self.is_dispatch_pending or self.sleep_pending:
            return False
        return (self.status == AmbulanceStatus.IDLE_AT_STATION
                or self.status == AmbulanceStatus.FREE_AFTER_CALL
                or self.status in GOING_TO_STATION_STATUSES)

    # ---------------------------------------------------------------------
    # State transitions (DISPATCH CYCLE)
    # ---------------------------------------------------------------------

    def wake_up(self, station_node: int, time: float) -> None:
        """SLEEPING → IDLE_AT_STATION."""
        if self.route is None:
            self.route = Route.stationary(station_node, time)
        self.set_status(AmbulanceStatus.IDLE_AT_STATION, time)

    def go_to_sleep(self, time: float) -> None:
        """IDLE_AT_STATION → SLEEPING."""
        self.sleep_pending = False
        self.set_status(AmbulanceStatus.SLEEPING, time)

    def mobilise(self, call, time: float) -> None:
        """IDLE_AT_STATION → MOBILISING."""
        self.call = call
        self.num_dispatches += 1
        self.set_status(AmbulanceStatus.MOBILISING, time)

    def dispatch_to_call(self, call, network, time: float, count: bool = True) -> float:
        """Move to GOING_TO_CALL; returns the arrival time at the call."""
        self.call = call
        if count:
            self.num_dispatches += 1
        self.set_status(AmbulanceStatus.GOING_TO_CALL, time)
        return self._travel(network, call.node, time)

    def arrive_at_call(self, time: float) -> None:
        """GOING_TO_CALL → AT_CALL."""
        self._arrive(time)
        self.set_status(AmbulanceStatus.AT_CALL, time)

    def go_to_hospital(self, hospital, network, time: float) -> float:
        """AT_CALL → GOING_TO_HOSPITAL; returns the arrival time at the hospital."""
        self.set_status(AmbulanceStatus.GOING_TO_HOSPITAL, time)
        return self._travel(network, hospital.node, time)

    def arrive_at_hospital(self, time: float) -> None:
        """GOING_TO_HOSPITAL → AT_HOSPITAL."""
        self._arrive(time)
        self.set_status(AmbulanceStatus.AT_HOSPITAL, time)

    def become_free(self, time: float) -> None:
        """AT_CALL / AT_HOSPITAL → FREE_AFTER_CALL."""
        self.call = None
        self.set_status(AmbulanceStatus.FREE_AFTER_CALL, time)

    def return_to_station(self, station, network, time: float) -> float:
        """FREE_AFTER_CALL → RETURNING_TO_STATION; returns the arrival time."""
        self.set_status(AmbulanceStatus.RETURNING_TO_STATION, time)
        return self._travel(network, station.node, time)

    def move_up(self, station, network, time: float) -> float:
        """Redirect to a new station → MOVING_UP_TO_STATION; returns the arrival time."""
        self.station_index = station.index
        self.num_relocations += 1
        self.set_status(AmbulanceStatus.MOVING_UP_TO_STATION, time)
        return self._travel(network, station.node, time)

    def arrive_at_station(self, time: float) -> None:
        """RETURNING / MOVING_UP → IDLE_AT_STATION."""
        self._arrive(time)
        self.set_status(AmbulanceStatus.IDLE_AT_STATION, time)

    # ------------------------------------------------------------------
    # Helper functions
    # ------------------------------------------------------------------

    def travel_time_to(self, network, node: int, time: float) -> float:
        """Time to reach ``node`` if redirected at ``time``."""
        next_node, arrival = self.location(time)
        return (arrival - time) + network.travel_time(next_node, node)

    def travel_times_to(self, network, nodes: List[int], time: float) -> np.ndarray:
        next_node, arrival = self.location(time)
        return np.array([(arrival - time) + network.travel_time(next_node, n) for n in nodes])

    def current_shift(self) -> Optional[Tuple[float, float]]:
        if self.shift_index < len(self.shifts):
            return self.shifts[self.shift_index]
        return None
