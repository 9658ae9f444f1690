"""
DDSM move-up: solve the Dynamic Double Standard Model at every decision point.

Every movable ambulance is (re)assigned to a station so that as much demand as
possible is covered twice within the first cover time, subject to covering a
target fraction once within the first cover time and all demand within the
second, at a cost per minute of relocation travel. The integer program is in
``ems_moveup.models.ddsm_model``.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ems_moveup.models.ddsm_model import SOLVERS, solve_ddsm
from ems_moveup.simulator.call import Priority
from ems_moveup.simulator.moveup import is_movable
from ems_moveup.strategies.base import Decision, MoveUpStrategy

LOGGER = logging.getLogger(__name__)

# 50 per day of travel with demand in calls per day, rescaled to minutes
DEFAULT_TRAVEL_TIME_COST = 50.0 / (24 * 60) ** 2
DEFAULT_SLACK_WEIGHT = 1e9
FALLBACKS = ("keep", "raise")
DEMAND_RTOL = 0.01


def ddsm_output_vector(station_assignments: Sequence[int], num_stations: int) -> np.ndarray:
    """One-hot station vector per ambulance, averaged over the ambulances."""
    output = np.zeros(num_stations)
    if len(station_assignments) == 0:
        return output
    for j in station_assignments:
        output[j] += 1.0
    return output / len(station_assignments)


def check_demand_consistency(point_demands: Sequence[np.ndarray], rtol: float = DEMAND_RTOL) -> None:
    """Total demand must agree between the two cover times."""
    total_1 = float(np.sum(point_demands[0]))
    total_2 = float(np.sum(point_demands[1]))
    if not np.isclose(total_1, total_2, rtol=rtol, atol=0.0):
        raise AssertionError(
            f"Demand mismatch between cover times: {total_1:.6g} vs {total_2:.6g}"
        )


def get_coverage_data(coverage, demand, priorities: Sequence[Priority],
                      time: float) -> Tuple[List[List[List[int]]], List[np.ndarray]]:
    """
    Point-set coverage for each cover-time priority.

    Each priority's point-set demand is scaled by ``total rate / priority rate``
    so both represent the demand of all priorities.

    Returns:
        (point_stations, point_demands), one item per priority.
    """
    mode = demand.mode_at(time)
    total_rate = mode.total_arrival_rate
    point_stations, point_demands = [], []
    for priority in priorities:
        station_sets, demands = coverage.points_coverage(priority, time)
        priority_rate = mode.arrival_rate(priority)
        if priority_rate > 0:
            demands = demands * (total_rate / priority_rate)
        point_stations.append(station_sets)
        point_demands.append(np.asarray(demands, dtype=float))
    check_demand_consistency(point_demands)
    return point_stations, point_demands


class DDSMStrategy(MoveUpStrategy):
    """
    Args:
        cover_fraction_target_t1: Fraction of demand to cover within the first cover time, in [0, 1]
        travel_time_cost: Cost per minute of relocation travel (> 0)
        slack_weight: Penalty per unit of unmet coverage target (> 0, large)
        cover_time_demand_priorities: The two priorities whose cover times are used, shorter first
        trigger_on_dispatch / trigger_on_free: When to consider move-ups
        solver: "cbc", "glpk" or "gurobi"
        solver_options: Passed to the solver as parameters
        use_z_var: Count ambulances per station with auxiliary variables
        bin_tolerance: Allowed deviation of assignment values from 0/1, in (0, 0.1)
        fallback: On a non-optimal solve, "keep" every ambulance where it is or "raise"
    """

    def __init__(self,
                 cover_fraction_target_t1: float = 0.5,
                 travel_time_cost: float = DEFAULT_TRAVEL_TIME_COST,
                 slack_weight: float = DEFAULT_SLACK_WEIGHT,
                 cover_time_demand_priorities: Sequence[Priority] = (Priority.HIGH, Priority.LOW),
                 *,
                 trigger_on_dispatch: bool = False,
                 trigger_on_free: bool = True,
                 solver: str = "cbc",
                 solver_options: Optional[Dict[str, Any]] = None,
                 use_z_var: bool = True,
                 bin_tolerance: float = 1e-5,
                 fallback: str = "keep") -> None:
        self.cover_fraction_target_t1 = cover_fraction_target_t1
        self.travel_time_cost = travel_time_cost
        self.slack_weight = slack_weight
        self.cover_time_demand_priorities = [Priority(p) for p in cover_time_demand_priorities]
        self.trigger_on_dispatch = trigger_on_dispatch
        self.trigger_on_free = trigger_on_free
        self.solver = solver
        self.solver_options = dict(solver_options or {})
        self.use_z_var = use_z_var
        self.bin_tolerance = bin_tolerance
        self.fallback = fallback
        self._validate()

        self.cover_times: List[float] = []
        self.initialized = False

    def _validate(self) -> None:
        if not 0.0 <= self.cover_fraction_target_t1 <= 1.0:
            raise ValueError("cover_fraction_target_t1 must be in [0, 1]")
        if self.travel_time_cost <= 0:
            raise ValueError("travel_time_cost must be positive")
        if self.slack_weight <= 0:
            raise ValueError("slack_weight must be positive")
        if len(self.cover_time_demand_priorities) != 2:
            raise ValueError("Exactly 2 cover time demand priorities are required")
        if self.solver not in SOLVERS:
            raise ValueError(f"solver must be one of {SOLVERS}, got {self.solver!r}")
        if not 0.0 < self.bin_tolerance < 0.1:
            raise ValueError("bin_tolerance must be in (0, 0.1)")
        if self.fallback not in FALLBACKS:
            raise ValueError(f"fallback must be one of {FALLBACKS}, got {self.fallback!r}")

    def initialize(self, state) -> None:
        coverage = state.infrastructure.demand_coverage
        if coverage is None:
            raise ValueError("DDSMStrategy needs an infrastructure with a demand model")
        self.cover_times = [coverage.cover_times[p] for p in self.cover_time_demand_priorities]
        if not self.cover_times[0] < self.cover_times[1]:
            raise ValueError(
                f"First cover time must be less than the second, got {self.cover_times}"
            )
        self.initialized = True
        LOGGER.info("DDSM strategy initialized (cover times %s, solver %s)", self.cover_times, self.solver)

    def should_trigger_on_dispatch(self, state) -> bool:
        return self.trigger_on_dispatch

    def should_trigger_on_free(self, state) -> bool:
        return self.trigger_on_free

    def decide_moveup(self, state, ambulance) -> Decision:
        if not self.initialized:
            self.initialize(state)

        movable = [a for a in state.ambulances if is_movable(a)]
        if not movable:
            return [], [], np.zeros(state.num_stations)

        travel_times = np.vstack([state.moveup_travel_times(a) for a in movable])
        costs = travel_times * self.travel_time_cost

        infra = state.infrastructure
        point_stations, point_demands = get_coverage_data(
            infra.demand_coverage, infra.demand, self.cover_time_demand_priorities, state.time
        )

        assignments, status = solve_ddsm(
            costs, point_stations, point_demands,
            cover_fraction_target_t1=self.cover_fraction_target_t1,
            slack_weight=self.slack_weight,
            use_z_var=self.use_z_var,
            solver=self.solver,
            solver_options=self.solver_options,
            bin_tolerance=self.bin_tolerance,
        )
        if assignments is None:
            LOGGER.warning("DDSM optimization did not find an optimal solution (%s)", status)
            if self.fallback == "raise":
                raise RuntimeError(f"DDSM optimization did not find an optimal solution ({status})")
            assignments = [a.station_index for a in movable]

        target_stations = [state.stations[int(j)] for j in assignments]
        return movable, target_stations, ddsm_output_vector(assignments, state.num_stations)

    def update_parameters(self, params: Dict[str, Any]) -> None:
        known = ("cover_fraction_target_t1", "travel_time_cost", "slack_weight",
                 "trigger_on_dispatch", "trigger_on_free", "solver", "solver_options",
                 "use_z_var", "bin_tolerance", "fallback")
        previous = {k: getattr(self, k) for k in known}
        self._set_known_parameters(params, known)
        try:
            self._validate()
        except ValueError:
            for key, value in previous.items():
                setattr(self, key, value)
            raise
