"""
Demand and demand-coverage model.

Demand is a set of points (network nodes) with a call arrival rate per point
for each priority. Coverage groups demand points by the set of stations that
can reach them within the cover time of a priority; each group is a "point
set" whose demand is the sum over its points.
"""

from typing import Dict, List, Optional, Sequence

import numpy as np

from ems_moveup.simulator.call import Priority


class DemandMode:
    """Arrival rates (calls per minute) per demand point, valid from ``start_time``."""

    def __init__(self, rates: Dict[Priority, Sequence[float]], start_time: float = 0.0) -> None:
        self.rates = {Priority(p): np.asarray(r, dtype=float) for p, r in rates.items()}
        self.start_time = float(start_time)

    def arrival_rate(self, priority: Priority) -> float:
        rates = self.rates.get(Priority(priority))
        return 0.0 if rates is None else float(rates.sum())

    @property
    def total_arrival_rate(self) -> float:
        return sum(float(r.sum()) for r in self.rates.values())


class DemandModel:
    """Demand points and one or more time-ordered demand modes."""

    def __init__(self, nodes: Sequence[int],
                 rates: Optional[Dict[Priority, Sequence[float]]] = None,
                 *,
                 modes: Optional[List[DemandMode]] = None) -> None:
        if (rates is None) == (modes is None):
            raise ValueError("Provide exactly one of rates or modes")
        self.nodes = list(nodes)
        self.modes = sorted(modes, key=lambda m: m.start_time) if modes else [DemandMode(rates)]
        for mode in self.modes:
            for priority, r in mode.rates.items():
                if len(r) != len(self.nodes):
                    raise ValueError(f"{priority.name} rates have {len(r)} values for {len(self.nodes)} points")
                if np.any(r < 0):
                    raise ValueError("Demand rates must be non-negative")

    def mode_at(self, time: float) -> DemandMode:
        current = self.modes[0]
        for mode in self.modes:
            if mode.start_time <= time:
                current = mode
        return current


class PointsCoverage:
    """Point sets for one priority: covering stations and summed demand per set."""

    def __init__(self, station_sets: List[List[int]], point_set_members: List[List[int]]) -> None:
        self.station_sets = station_sets
        self.point_set_members = point_set_members

    def __len__(self) -> int:
        return len(self.station_sets)

    def demands(self, rates: np.ndarray) -> np.ndarray:
        return np.array([rates[members].sum() for members in self.point_set_members])


class DemandCoverage:
    """
    Which stations cover which demand points, per priority cover time.

    Built once from the (shared, read-only) network and stations.
    """

    def __init__(self, demand: DemandModel, network, stations, cover_times: Dict[Priority, float]) -> None:
        self.demand = demand
        self.cover_times = {Priority(p): float(t) for p, t in cover_times.items()}
        self.num_stations = len(stations)

        station_nodes = [s.node for s in stations]
        # travel from each station to each demand point
        times = network.travel_time_matrix(station_nodes, demand.nodes)
        self.points_coverages: Dict[Priority, PointsCoverage] = {}
        for priority, cover_time in self.cover_times.items():
            groups: Dict[tuple, List[int]] = {}
            for point in range(len(demand.nodes)):
                covering = tuple(int(j) for j in np.flatnonzero(times[:, point] <= cover_time))
                groups.setdefault(covering, []).append(point)
            keys = sorted(groups)
            self.points_coverages[priority] = PointsCoverage(
                [list(k) for k in keys], [groups[k] for k in keys]
            )

    def points_coverage(self, priority: Priority, time: float):
        """
        Station sets and demand of each point set for ``priority`` at ``time``.

        Returns (station_sets, demands).
        """
        priority = Priority(priority)
        if priority not in self.points_coverages:
            raise ValueError(f"No cover time configured for priority {priority.name}")
        coverage = self.points_coverages[priority]
        mode = self.demand.mode_at(time)
        rates = mode.rates.get(priority, np.zeros(len(self.demand.nodes)))
        return coverage.station_sets, coverage.demands(rates)
