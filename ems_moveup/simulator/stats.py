"""
Periodic statistics snapshots taken while the simulation runs.
"""

from collections import Counter
from typing import Dict, List, Optional

import pandas as pd

from ems_moveup.simulator.ambulance import AmbulanceStatus


class StatsConfig:
    """
    Snapshot schedule: first capture after ``warm_up_duration`` (or after one
    period if no warm-up is set), then every ``period_duration`` minutes.
    ``period_duration=None`` disables periodic capture.
    """
    def __init__(self, period_duration: Optional[float] = None, warm_up_duration: float = 0.0) -> None:
        if period_duration is not None and period_duration <= 0:
            raise ValueError("period_duration must be positive")
        if warm_up_duration < 0:
            raise ValueError("warm_up_duration must be non-negative")
        self.period_duration = period_duration
        self.warm_up_duration = warm_up_duration


class StatsSnapshot:
    def __init__(self, time: float, station_idle_counts: List[int],
                 status_counts: Dict[str, int], num_calls_processed: int,
                 num_queued_calls: int, num_relocations: int) -> None:
        self.time = time
        self.station_idle_counts = station_idle_counts
        self.status_counts = status_counts
        self.num_calls_processed = num_calls_processed
        self.num_queued_calls = num_queued_calls
        self.num_relocations = num_relocations
        # station index -> ambulances whose status is idle at that station
        self.station_idle_ambulances: Dict[int, int] = {}


class SimStats:
    def __init__(self, config: Optional[StatsConfig], start_time: float) -> None:
        self.config = config or StatsConfig()
        self.captures: List[StatsSnapshot] = []
        if self.config.period_duration is None:
            self.next_capture_time = float("inf")
        else:
            warm_up = self.config.warm_up_duration or self.config.period_duration
            self.next_capture_time = start_time + warm_up

    def is_due(self, time: float) -> bool:
        return self.next_capture_time <= time

    def capture(self, state, time: float) -> StatsSnapshot:
        idle_by_station = Counter(
            a.station_index for a in state.ambulances
            if a.status == AmbulanceStatus.IDLE_AT_STATION
        )
        snapshot = StatsSnapshot(
            time=time,
            station_idle_counts=[s.num_idle_ambs for s in state.stations],
            status_counts=dict(Counter(a.status.name for a in state.ambulances)),
            num_calls_processed=state.num_calls_processed,
            num_queued_calls=len(state.queued_calls),
            num_relocations=sum(a.num_relocations for a in state.ambulances),
        )
        snapshot.station_idle_ambulances = {s.index: idle_by_station.get(s.index, 0) for s in state.stations}
        self.captures.append(snapshot)
        return snapshot

    def capture_due(self, state, time: float) -> None:
        """Capture every scheduled snapshot up to and including ``time``."""
        while self.is_due(time):
            self.capture(state, self.next_capture_time)
            self.next_capture_time += self.config.period_duration

    def to_dataframe(self) -> pd.DataFrame:
        rows = []
        for snap in self.captures:
            row = {
                "time": snap.time,
                "num_calls_processed": snap.num_calls_processed,
                "num_queued_calls": snap.num_queued_calls,
                "num_relocations": snap.num_relocations,
            }
            for j, count in enumerate(snap.station_idle_counts):
                row[f"station_{j}_idle"] = count
            rows.append(row)
        return pd.DataFrame(rows)
