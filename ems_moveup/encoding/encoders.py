"""
Concrete state encoders.

BasicStateEncoder
    Coordinates only: ``[amb_0_x, amb_0_y, ..., station_0_x, station_0_y, ...]``,
    size ``2 * (num_ambulances + num_stations)``. Ambulances in transit are
    placed at the next node on their route.

StationOccupancyEncoder
    Per station: idle ambulances, ambulances heading there, and travel time
    from the triggering ambulance (normalised by ``travel_time_scale``);
    followed by the time of day, the busy fraction of the fleet and the
    number of queued calls. Size ``3 * num_stations + 3``.
"""

import numpy as np

from ems_moveup.encoding.base import StateEncoder
from ems_moveup.simulator.ambulance import GOING_TO_STATION_STATUSES

MINUTES_IN_DAY = 24 * 60


class BasicStateEncoder(StateEncoder):
    def __init__(self, num_ambulances: int, num_stations: int) -> None:
        if num_ambulances <= 0 or num_stations <= 0:
            raise ValueError("num_ambulances and num_stations must be positive")
        self.num_ambulances = num_ambulances
        self.num_stations = num_stations

    @classmethod
    def from_state(cls, state) -> "BasicStateEncoder":
        return cls(state.num_ambulances, state.num_stations)

    @property
    def input_size(self) -> int:
        return 2 * (self.num_ambulances + self.num_stations)

    @property
    def output_size(self) -> int:
        return self.num_stations

    def encode_state(self, state, ambulance_index: int) -> np.ndarray:
        network = state.network
        encoded = np.zeros(self.input_size, dtype=np.float32)
        for i, amb in enumerate(state.ambulances):
            node, _ = amb.location(state.time)
            encoded[2 * i:2 * i + 2] = network.coords(node)
        offset = 2 * self.num_ambulances
        for j, station in enumerate(state.stations):
            encoded[offset + 2 * j:offset + 2 * j + 2] = network.coords(station.node)
        return encoded


class StationOccupancyEncoder(StateEncoder):
    def __init__(self, num_stations: int, travel_time_scale: float = 60.0) -> None:
        if num_stations <= 0:
            raise ValueError("num_stations must be positive")
        if travel_time_scale <= 0:
            raise ValueError("travel_time_scale must be positive")
        self.num_stations = num_stations
        self.travel_time_scale = travel_time_scale

    @classmethod
    def from_state(cls, state, **kwargs) -> "StationOccupancyEncoder":
        return cls(state.num_stations, **kwargs)

    @property
    def input_size(self) -> int:
        return 3 * self.num_stations + 3

    @property
    def output_size(self) -> int:
        return self.num_stations

    def encode_state(self, state, ambulance_index: int) -> np.ndarray:
        s = self.num_stations
        encoded = np.zeros(self.input_size, dtype=np.float32)

        for station in state.stations:
            encoded[station.index] = station.num_idle_ambs
        for amb in state.ambulances:
            if amb.status in GOING_TO_STATION_STATUSES:
                encoded[s + amb.station_index] += 1

        amb = state.ambulances[ambulance_index]
        encoded[2 * s:3 * s] = state.moveup_travel_times(amb) / self.travel_time_scale

        num_busy = sum(1 for a in state.ambulances if a.is_busy())
        encoded[3 * s] = (state.time % MINUTES_IN_DAY) / MINUTES_IN_DAY
        encoded[3 * s + 1] = num_busy / max(state.num_ambulances, 1)
        encoded[3 * s + 2] = len(state.queued_calls)
        return encoded
