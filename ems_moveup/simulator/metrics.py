"""
Read-only performance metrics computed from a finished simulation state.

Response time is the time from call arrival to the ambulance reaching the
scene, in minutes, over processed calls.
"""

from dataclasses import dataclass
from typing import Callable, Dict

import numpy as np

from ems_moveup.simulator.ambulance import BUSY_STATUSES, AmbulanceStatus
from ems_moveup.simulator.call import CallStatus

DEFAULT_SURVIVAL_THRESHOLD = 8.0
DEFAULT_PERCENTILE = 90.0


def get_response_times(state) -> np.ndarray:
    return np.array([
        c.response_duration for c in state.calls
        if c.status == CallStatus.PROCESSED and c.response_duration is not None
    ], dtype=float)


def get_avg_response_time(state) -> float:
    times = get_response_times(state)
    return float(times.mean()) if times.size else float("nan")


def get_survival_rate(state, threshold: float = DEFAULT_SURVIVAL_THRESHOLD) -> float:
    """Fraction of processed calls reached in strictly less than ``threshold`` minutes."""
    times = get_response_times(state)
    if not times.size:
        return 0.0
    return float(np.mean(times < threshold))


def get_percentile_response_time(state, percentile: float = DEFAULT_PERCENTILE) -> float:
    if not 0.0 <= percentile <= 100.0:
        raise ValueError("percentile must be in [0, 100]")
    times = get_response_times(state)
    return float(np.percentile(times, percentile)) if times.size else float("inf")


def get_max_response_time(state) -> float:
    times = get_response_times(state)
    return float(times.max()) if times.size else float("inf")


def get_ambulance_utilization(state) -> float:
    """Fraction of on-shift fleet time spent mobilising, travelling to or at a call, or transporting.

    Time spent SLEEPING (off shift) is excluded from the denominator.
    """
    end_time = state.end_time if state.end_time is not None else state.time
    span = end_time - state.start_time
    available = sum(span - amb.status_durations[AmbulanceStatus.SLEEPING] for amb in state.ambulances)
    if available <= 0:
        return 0.0
    busy = sum(amb.status_durations[s] for amb in state.ambulances for s in BUSY_STATUSES)
    return float(busy / available)


def get_num_relocations(state) -> int:
    return int(sum(amb.num_relocations for amb in state.ambulances))


def get_total_distance(state) -> float:
    return float(sum(amb.distance_traveled for amb in state.ambulances))


def get_num_calls_processed(state) -> int:
    return state.num_calls_processed


METRICS: Dict[str, Callable] = {
    "avg_response_time": get_avg_response_time,
    "response_times": get_response_times,
    "survival_rate": get_survival_rate,
    "percentile_response_time": get_percentile_response_time,
    "max_response_time": get_max_response_time,
    "ambulance_utilization": get_ambulance_utilization,
    "num_relocations": get_num_relocations,
    "total_distance": get_total_distance,
    "num_calls_processed": get_num_calls_processed,
}


def get_metric(state, name: str, **options):
    """
    Metric by name; ``options`` go to the metric function
    (``threshold`` for survival_rate, ``percentile`` for percentile_response_time).
    """
    try:
        func = METRICS[name]
    except KeyError:
        raise ValueError(f"Unknown metric {name!r}. Available metrics: {sorted(METRICS)}") from None
    return func(state, **options)


@dataclass
class SimulationMetrics:
    avg_response_time: float
    survival_rate: float
    percentile_response_time: float
    max_response_time: float
    utilization: float
    num_relocations: int
    total_distance: float
    num_calls_processed: int
    survival_threshold: float = DEFAULT_SURVIVAL_THRESHOLD
    response_percentile: float = DEFAULT_PERCENTILE

    def as_dict(self) -> Dict[str, float]:
        return dict(self.__dict__)

    def __str__(self) -> str:
        return "\n".join([
            "SimulationMetrics:",
            f"  Avg Response Time: {self.avg_response_time:.2f} min",
            f"  Survival Rate ({self.survival_threshold:g} min): {self.survival_rate * 100:.1f}%",
            f"  {self.response_percentile:g}th Percentile: {self.percentile_response_time:.2f} min",
            f"  Max Response Time: {self.max_response_time:.2f} min",
            f"  Utilization: {self.utilization * 100:.1f}%",
            f"  Relocations: {self.num_relocations}",
            f"  Total Distance: {self.total_distance:.2f}",
            f"  Calls Processed: {self.num_calls_processed}",
        ])


def extract_all_metrics(state, survival_threshold: float = DEFAULT_SURVIVAL_THRESHOLD,
                        percentile: float = DEFAULT_PERCENTILE) -> SimulationMetrics:
    return SimulationMetrics(
        avg_response_time=get_avg_response_time(state),
        survival_rate=get_survival_rate(state, threshold=survival_threshold),
        percentile_response_time=get_percentile_response_time(state, percentile=percentile),
        max_response_time=get_max_response_time(state),
        utilization=get_ambulance_utilization(state),
        num_relocations=get_num_relocations(state),
        total_distance=get_total_distance(state),
        num_calls_processed=get_num_calls_processed(state),
        survival_threshold=survival_threshold,
        response_percentile=percentile,
    )
