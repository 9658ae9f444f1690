from typing import Any, Dict

import numpy as np

from ems_moveup.strategies.base import Decision, MoveUpStrategy


class LearnedPolicyStrategy(MoveUpStrategy):
    """
    Move-up from a learned policy: encoder -> function approximator -> best station.

    The approximator maps the encoded state to one score per station and the
    triggering ambulance is sent to the highest scoring one (lowest index on
    ties). The score vector is returned as the raw output for logging.
    """

    def __init__(self, encoder, approximator, *, trigger_on_dispatch: bool = False,
                 trigger_on_free: bool = True) -> None:
        if approximator.input_size != encoder.input_size:
            raise ValueError(
                f"Approximator expects {approximator.input_size} inputs, "
                f"encoder produces {encoder.input_size}"
            )
        if approximator.output_size != encoder.output_size:
            raise ValueError(
                f"Approximator produces {approximator.output_size} outputs, "
                f"encoder expects {encoder.output_size}"
            )
        self.encoder = encoder
        self.approximator = approximator
        self.trigger_on_dispatch = trigger_on_dispatch
        self.trigger_on_free = trigger_on_free

    def should_trigger_on_dispatch(self, state) -> bool:
        return self.trigger_on_dispatch

    def should_trigger_on_free(self, state) -> bool:
        return self.trigger_on_free

    def decide_moveup(self, state, ambulance) -> Decision:
        encoded_state = self.encoder.encode_state(state, ambulance.index)
        scores = np.asarray(self.approximator.forward(encoded_state), dtype=float)
        station_index = self.encoder.decode_decision(state, ambulance.index, scores)
        return [ambulance], [state.stations[station_index]], scores

    def update_parameters(self, params: Dict[str, Any]) -> None:
        params = dict(params)
        weights = params.pop("weights", None)
        self._set_known_parameters(params, ("trigger_on_dispatch", "trigger_on_free"))
        if weights is not None:
            self.approximator.set_parameters(weights)
