from typing import List, Optional

from ems_moveup.simulator.ambulance import Ambulance, AmbulanceClass
from ems_moveup.simulator.call import Priority

# ---------------------------------------------------------------------------
#  Dispatch Policies
# ---------------------------------------------------------------------------


class NearestDispatchPolicy:
    """Dispatch the dispatchable ambulance with the shortest travel time to the call."""

    def select_ambulance(self, state, call) -> Optional[Ambulance]:
        available_units = self.available_ambulances(state)
        if not available_units:
            return None
        # min() keeps the first of equal times, so ties go to the lowest index
        return min(
            available_units,
            key=lambda amb: amb.travel_time_to(state.network, call.node, state.time)
        )

    @staticmethod
    def available_ambulances(state) -> List[Ambulance]:
        return [amb for amb in state.ambulances if amb.is_dispatchable()]


class ClassAwareDispatchPolicy(NearestDispatchPolicy):
    """
    Nearest dispatch that keeps ALS units for high priority calls where possible.

    Lower priority calls are given the nearest BLS unit if one is available and
    fall back to any unit otherwise.
    """

    def __init__(self, preferred_class: AmbulanceClass = AmbulanceClass.BLS) -> None:
        self.preferred_class = preferred_class

    def select_ambulance(self, state, call) -> Optional[Ambulance]:
        available_units = self.available_ambulances(state)
        if not available_units:
            return None
        if call.priority != Priority.HIGH:
            preferred = [a for a in available_units if a.amb_class == self.preferred_class]
            if preferred:
                available_units = preferred
        return min(
            available_units,
            key=lambda amb: amb.travel_time_to(state.network, call.node, state.time)
        )
