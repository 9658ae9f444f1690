"""
Move-up strategy interface.

A strategy answers three questions for the simulator: should a move-up be
considered after a dispatch, should one be considered after an ambulance
becomes free, and which ambulances should move to which stations. Strategies
only return decisions; the simulator performs every state change.

Example::

    class AlwaysHome(MoveUpStrategy):
        def should_trigger_on_dispatch(self, state):
            return False

        def should_trigger_on_free(self, state):
            return True

        def decide_moveup(self, state, ambulance):
            return [ambulance], [state.stations[0]], None
"""

import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Tuple

from ems_moveup.simulator.ambulance import Ambulance
from ems_moveup.simulator.station import Station

Decision = Tuple[List[Ambulance], List[Station], Any]


class MoveUpStrategy(ABC):
    """Base class for move-up decision strategies."""

    @abstractmethod
    def should_trigger_on_dispatch(self, state) -> bool:
        """Consider a move-up right after an ambulance is dispatched?"""

    @abstractmethod
    def should_trigger_on_free(self, state) -> bool:
        """Consider a move-up right after an ambulance becomes free (with no queued calls)?"""

    @abstractmethod
    def decide_moveup(self, state, ambulance: Ambulance) -> Decision:
        """
        Decide relocations.

        Args:
            state: Current simulation state (read only)
            ambulance: Ambulance whose dispatch / free event triggered the decision

        Returns:
            (ambulances, stations, raw_output): parallel lists of ambulances to
            move and their target stations, plus the strategy's raw output for
            the decision log.
        """

    def initialize(self, state) -> None:
        """Called once before the first event of a run. Does nothing by default."""
        return None

    def copy(self) -> "MoveUpStrategy":
        """Independent copy that keeps any precomputed state."""
        return copy.deepcopy(self)

    def update_parameters(self, params: Dict[str, Any]) -> None:
        raise NotImplementedError(
            f"update_parameters not implemented for {type(self).__name__}. "
            "Strategies that support parameter updates must implement this method."
        )

    @property
    def name(self) -> str:
        return type(self).__name__

    def _set_known_parameters(self, params: Dict[str, Any], known: Iterable[str]) -> None:
        known = set(known)
        unknown = sorted(set(params) - known)
        if unknown:
            raise ValueError(f"Unknown parameters for {self.name}: {unknown}")
        for key, value in params.items():
            setattr(self, key, value)


