from abc import ABC, abstractmethod

import numpy as np


class StateEncoder(ABC):
    """
    Turns the simulation state into a fixed-size feature vector for a learned policy.

    Concrete encoders implement ``encode_state``, ``input_size`` and
    ``output_size``. The output of a policy is one score per station.
    """

    @abstractmethod
    def encode_state(self, state, ambulance_index: int) -> np.ndarray:
        """Feature vector of length ``input_size`` seen from the triggering ambulance."""

    @property
    @abstractmethod
    def input_size(self) -> int:
        ...

    @property
    @abstractmethod
    def output_size(self) -> int:
        ...

    def decode_decision(self, state, ambulance_index: int, output) -> int:
        """Station index with the highest score; ties go to the lowest index."""
        output = np.asarray(output, dtype=float).ravel()
        if output.shape[0] != self.output_size:
            raise ValueError(f"Expected {self.output_size} station scores, got {output.shape[0]}")
        return int(np.argmax(output))

    def default_output(self, state, ambulance) -> np.ndarray:
        """Scores that keep ``ambulance`` at its current station (one-hot)."""
        output = np.zeros(self.output_size, dtype=np.float32)
        output[ambulance.station_index] = 1.0
        return output
