from typing import Any, Dict, Optional

import numpy as np

from ems_moveup.strategies.base import Decision, MoveUpStrategy


class NullStrategy(MoveUpStrategy):
    """
    Baseline that never relocates anything.

    Every decision sends the triggering ambulance to the station it already
    belongs to, so the simulator schedules nothing. With a logger attached it
    records the state at each trigger, which makes it the control run for the
    other strategies. If an encoder is given its ``default_output`` is used as
    the raw output.
    """

    def __init__(self, trigger_on_dispatch: bool = False, trigger_on_free: bool = True,
                 encoder=None) -> None:
        self.trigger_on_dispatch = trigger_on_dispatch
        self.trigger_on_free = trigger_on_free
        self.encoder = encoder

    def should_trigger_on_dispatch(self, state) -> bool:
        return self.trigger_on_dispatch

    def should_trigger_on_free(self, state) -> bool:
        return self.trigger_on_free

    def decide_moveup(self, state, ambulance) -> Decision:
        station = state.stations[ambulance.station_index]
        if self.encoder is not None:
            output: Optional[np.ndarray] = self.encoder.default_output(state, ambulance)
        else:
            output = np.zeros(state.num_stations, dtype=np.float32)
            output[station.index] = 1.0
        return [ambulance], [station], output

    def update_parameters(self, params: Dict[str, Any]) -> None:
        self._set_known_parameters(params, ("trigger_on_dispatch", "trigger_on_free"))
