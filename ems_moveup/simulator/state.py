"""
Simulation state, split into a shared read-only infrastructure bundle and a
per-replication mutable bundle.
"""

import copy
from typing import Dict, List, Optional

import numpy as np

from ems_moveup.simulator.ambulance import Ambulance
from ems_moveup.simulator.call import Call, CallStatus, Priority
from ems_moveup.simulator.demand import DemandCoverage, DemandModel
from ems_moveup.simulator.events import Event, EventQueue, EventType
from ems_moveup.simulator.network import TravelNetwork
from ems_moveup.simulator.station import Hospital, Station
from ems_moveup.simulator.stats import SimStats, StatsConfig

DEFAULT_COVER_TIMES = {Priority.HIGH: 8.0, Priority.MEDIUM: 12.0, Priority.LOW: 20.0}


class Infrastructure:
    """
    Static scenario data shared by reference between replications.

    Stations here are templates: every ``SimulationState`` takes its own copy
    so live idle counters are never shared. Nothing in this object may be
    modified once replications start.
    """

    def __init__(self,
                 network: TravelNetwork,
                 stations: List[Station],
                 hospitals: List[Hospital],
                 *,
                 demand: Optional[DemandModel] = None,
                 cover_times: Optional[Dict[Priority, float]] = None,
                 mobilisation_delay: float = 0.0) -> None:
        if not stations:
            raise ValueError("At least one station is required")
        if not hospitals:
            raise ValueError("At least one hospital is required")
        if mobilisation_delay < 0:
            raise ValueError("mobilisation_delay must be non-negative")
        self.network = network
        self.stations = stations
        self.hospitals = hospitals
        self.mobilisation_delay = float(mobilisation_delay)
        self.demand = demand
        self.demand_coverage = None
        if demand is not None:
            self.demand_coverage = DemandCoverage(demand, network, stations, cover_times or DEFAULT_COVER_TIMES)

    @property
    def num_stations(self) -> int:
        return len(self.stations)


class SimulationState:
    """
    Mutable state of one simulation run.

    Takes private copies of the ambulances, calls and stations, schedules the
    ambulances' wake-up events and enqueues the first call arrival. The clock
    starts at ``start_time``.
    """

    def __init__(self,
                 infrastructure: Infrastructure,
                 ambulances: List[Ambulance],
                 calls: List[Call],
                 *,
                 start_time: float = 0.0,
                 stats_config: Optional[StatsConfig] = None) -> None:
        self.infrastructure = infrastructure
        self.stats_config = stats_config
        self.start_time = float(start_time)
        self.time = float(start_time)
        self.end_time: Optional[float] = None
        self.complete = False

        self.stations: List[Station] = copy.deepcopy(infrastructure.stations)
        for station in self.stations:
            station.reset(self.start_time)
        self.ambulances: List[Ambulance] = copy.deepcopy(ambulances)
        self.calls: List[Call] = sorted(copy.deepcopy(calls), key=lambda c: c.arrival_time)
        for amb in self.ambulances:
            if not 0 <= amb.station_index < len(self.stations):
                raise ValueError(f"Ambulance {amb.index} has unknown station {amb.station_index}")

        self.event_queue = EventQueue()
        self.queued_calls: List[Call] = []
        self.responded_calls: List[Call] = []
        self.next_call_position = 0
        self.num_calls_processed = 0
        self.num_events_processed = 0
        self.stats = SimStats(stats_config, self.start_time)

        self._attach_ambulances()
        self._attach_first_call()

    def _attach_ambulances(self) -> None:
        for amb in self.ambulances:
            amb.reset_accounting(self.start_time)
            shift = amb.current_shift()
            wake_time = self.start_time if shift is None else max(shift[0], self.start_time)
            event = Event(EventType.AMB_WAKES_UP, wake_time, ambulance=amb,
                          station=self.stations[amb.station_index])
            self.event_queue.push(event)

    def _attach_first_call(self) -> None:
        if self.calls:
            first = self.calls[0]
            if first.arrival_time < self.start_time:
                raise ValueError("Calls must not arrive before the simulation start time")
            self.event_queue.push(Event(EventType.CALL_ARRIVES, first.arrival_time, call=first))
            self.next_call_position = 1

    # ------------------------------------------------------------------
    # Convenience accessors
    # ------------------------------------------------------------------

    @property
    def network(self) -> TravelNetwork:
        return self.infrastructure.network

    @property
    def hospitals(self) -> List[Hospital]:
        return self.infrastructure.hospitals

    @property
    def num_stations(self) -> int:
        return len(self.stations)

    @property
    def num_ambulances(self) -> int:
        return len(self.ambulances)

    def queue_call(self, call: Call) -> None:
        """Add a call to the waiting queue, kept sorted by priority then arrival time."""
        call.status = CallStatus.QUEUED
        call.was_queued = True
        self.queued_calls.append(call)
        self.queued_calls.sort(key=lambda c: (c.priority, c.arrival_time))

    def moveup_travel_times(self, ambulance: Ambulance) -> np.ndarray:
        """Travel time from the ambulance's current position to every station."""
        return ambulance.travel_times_to(self.network, [s.node for s in self.stations], self.time)

    def replicate(self, calls: Optional[List[Call]] = None,
                  ambulances: Optional[List[Ambulance]] = None) -> "SimulationState":
        """Fresh state on the same infrastructure. Only valid before the run starts."""
        if self.num_events_processed:
            raise RuntimeError("Cannot replicate a state that has already been simulated")
        return SimulationState(
            self.infrastructure,
            self.ambulances if ambulances is None else ambulances,
            self.calls if calls is None else calls,
            start_time=self.start_time,
            stats_config=self.stats_config,
        )
