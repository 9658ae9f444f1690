"""
Running many independent replications of one scenario.

Every replication gets its own ``SimulationState`` (ambulances, calls,
station counters and event queue are copied) while the ``Infrastructure`` is
shared. A strategy can be shared by all replications or copied for each one;
only copies may receive per-replication parameters.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
from tqdm import tqdm

from ems_moveup.simulator.call import Call
from ems_moveup.simulator.metrics import extract_all_metrics
from ems_moveup.simulator.simulator import simulate
from ems_moveup.simulator.state import SimulationState

LOGGER = logging.getLogger(__name__)


def split_calls(calls: Sequence[Call], num_sets: int) -> List[List[Call]]:
    """Split calls into ``num_sets`` consecutive parts of (almost) equal size; earlier parts get the remainder."""
    if num_sets <= 0:
        raise ValueError("Number of sets must be positive")
    calls = list(calls)
    base, remainder = divmod(len(calls), num_sets)
    parts, start = [], 0
    for i in range(num_sets):
        size = base + (1 if i < remainder else 0)
        parts.append(calls[start:start + size])
        start += size
    return parts


def create_simulation_instance(base_state: SimulationState,
                               calls: Optional[Sequence[Call]] = None) -> SimulationState:
    """Fresh, independent copy of an unsimulated base state, optionally with other calls."""
    return base_state.replicate(calls=None if calls is None else list(calls))


def run_replications(base_state: SimulationState,
                     strategy=None,
                     *,
                     call_sets: Optional[Sequence[Sequence[Call]]] = None,
                     num_replications: Optional[int] = None,
                     share_strategy: bool = True,
                     parameter_sets: Optional[Sequence[Dict[str, Any]]] = None,
                     logger=None,
                     show_progress: bool = True,
                     **sim_kwargs) -> pd.DataFrame:
    """
    Simulate the base state repeatedly and collect one row of metrics per replication.

    Args:
        base_state: Unsimulated state to copy for each replication
        strategy: Move-up strategy, or None for no move-ups
        call_sets: One call list per replication (defaults to the base state's calls)
        num_replications: Number of replications when ``call_sets`` is not given
        share_strategy: Reuse the same strategy object (True) or ``strategy.copy()`` per replication
        parameter_sets: Per-replication ``update_parameters`` arguments (requires ``share_strategy=False``)
        logger: Decision logger shared by all replications
        show_progress: Show a tqdm progress bar
        **sim_kwargs: Passed to ``simulate`` (stop condition, ``dispatch_policy``)

    Returns:
        DataFrame with a ``replication`` column and the ``SimulationMetrics`` fields.
    """
    if call_sets is not None and num_replications is not None and num_replications != len(call_sets):
        raise ValueError("num_replications does not match the number of call sets")
    if call_sets is None:
        call_sets = [None] * (num_replications if num_replications is not None else 1)
    if parameter_sets is not None:
        if share_strategy:
            raise ValueError("parameter_sets needs share_strategy=False so replications do not share parameters")
        if strategy is None:
            raise ValueError("parameter_sets given without a strategy")
        if len(parameter_sets) != len(call_sets):
            raise ValueError(f"Expected {len(call_sets)} parameter sets, got {len(parameter_sets)}")

    rows = []
    for rep, calls in enumerate(tqdm(call_sets, desc="Replications", disable=not show_progress)):
        state = create_simulation_instance(base_state, calls)
        rep_strategy = strategy
        if strategy is not None and not share_strategy:
            rep_strategy = strategy.copy()
            if parameter_sets is not None:
                rep_strategy.update_parameters(parameter_sets[rep])

        completed = simulate(state, rep_strategy, logger, **sim_kwargs)
        if not completed:
            LOGGER.warning("Replication %d stopped before the event queue emptied", rep)

        row = {"replication": rep, "completed": completed, "num_calls": len(state.calls)}
        row.update(extract_all_metrics(state).as_dict())
        rows.append(row)
    return pd.DataFrame(rows)
