from collections import defaultdict
from typing import Dict, Optional


class Station:
    """
    Ambulance station with an incrementally maintained idle-ambulance count.

    ``idle_count_durations[k]`` accumulates the time the station spent with
    exactly ``k`` idle ambulances.
    """
    def __init__(self, index: int, node: int, capacity: Optional[int] = None) -> None:
        self.index = index
        self.node = node
        self.capacity = capacity
        self.num_idle_ambs = 0
        self.idle_count_durations: Dict[int, float] = defaultdict(float)
        self.idle_count_set_time = 0.0

    def __repr__(self) -> str:
        return f"Station({self.index}, node={self.node}, idle={self.num_idle_ambs})"

    def _set_idle_count(self, count: int, time: float) -> None:
        if count < 0:
            raise RuntimeError(f"Station {self.index}: idle ambulance count would become negative")
        self.idle_count_durations[self.num_idle_ambs] += time - self.idle_count_set_time
        self.num_idle_ambs = count
        self.idle_count_set_time = time

    def add_idle(self, time: float) -> None:
        self._set_idle_count(self.num_idle_ambs + 1, time)

    def remove_idle(self, time: float) -> None:
        self._set_idle_count(self.num_idle_ambs - 1, time)

    def close_accounting(self, time: float) -> None:
        self._set_idle_count(self.num_idle_ambs, time)

    def reset(self, time: float) -> None:
        self.num_idle_ambs = 0
        self.idle_count_durations = defaultdict(float)
        self.idle_count_set_time = time


class Hospital:
    def __init__(self, index: int, node: int) -> None:
        self.index = index
        self.node = node

    def __repr__(self) -> str:
        return f"Hospital({self.index}, node={self.node})"
