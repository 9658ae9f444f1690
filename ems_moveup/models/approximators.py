"""
Function approximators mapping an encoded state to one score per station.

All approximators here are plain numpy. Parameters can be read and written as
a single flat vector, which is what parameter sweeps and evolutionary
training manipulate.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

import numpy as np


class FunctionApproximator(ABC):
    @property
    @abstractmethod
    def input_size(self) -> int:
        ...

    @property
    @abstractmethod
    def output_size(self) -> int:
        ...

    @abstractmethod
    def forward(self, x: np.ndarray) -> np.ndarray:
        """Scores for input ``x`` (shape ``(input_size,)``), shape ``(output_size,)``."""

    def get_parameters(self) -> np.ndarray:
        raise NotImplementedError(f"get_parameters not implemented for {type(self).__name__}")

    def set_parameters(self, params) -> None:
        raise NotImplementedError(f"set_parameters not implemented for {type(self).__name__}")

    @property
    def num_parameters(self) -> int:
        return int(self.get_parameters().size)

    def _check_input(self, x) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64).ravel()
        if x.shape[0] != self.input_size:
            raise ValueError(f"{type(self).__name__} expects {self.input_size} inputs, got {x.shape[0]}")
        return x


class LinearApproximator(FunctionApproximator):
    """``scores = W @ x + b``."""

    def __init__(self, input_size: int, output_size: int, *, seed: Optional[int] = None,
                 init_scale: float = 0.1) -> None:
        rng = np.random.default_rng(seed)
        self._input_size = input_size
        self._output_size = output_size
        self.weights = rng.normal(0.0, init_scale, size=(output_size, input_size))
        self.bias = np.zeros(output_size)

    @property
    def input_size(self) -> int:
        return self._input_size

    @property
    def output_size(self) -> int:
        return self._output_size

    def forward(self, x) -> np.ndarray:
        return self.weights @ self._check_input(x) + self.bias

    def get_parameters(self) -> np.ndarray:
        return np.concatenate([self.weights.ravel(), self.bias])

    def set_parameters(self, params) -> None:
        params = np.asarray(params, dtype=np.float64).ravel()
        n_w = self._output_size * self._input_size
        if params.size != n_w + self._output_size:
            raise ValueError(f"Expected {n_w + self._output_size} parameters, got {params.size}")
        self.weights = params[:n_w].reshape(self._output_size, self._input_size).copy()
        self.bias = params[n_w:].copy()


class MLPApproximator(FunctionApproximator):
    """
    Fully connected network with tanh hidden layers and a linear output layer.

    Args:
        input_size: Encoded state size
        hidden_sizes: Width of each hidden layer
        output_size: Number of stations
        seed: Seed for the weight initialisation
    """

    def __init__(self, input_size: int, hidden_sizes: Sequence[int], output_size: int, *,
                 seed: Optional[int] = None) -> None:
        rng = np.random.default_rng(seed)
        self.layer_sizes = [input_size, *hidden_sizes, output_size]
        self.layers = []
        for n_in, n_out in zip(self.layer_sizes[:-1], self.layer_sizes[1:]):
            # Xavier/Glorot uniform
            limit = np.sqrt(6.0 / (n_in + n_out))
            self.layers.append((rng.uniform(-limit, limit, size=(n_out, n_in)), np.zeros(n_out)))

    @property
    def input_size(self) -> int:
        return self.layer_sizes[0]

    @property
    def output_size(self) -> int:
        return self.layer_sizes[-1]

    def forward(self, x) -> np.ndarray:
        h = self._check_input(x)
        for k, (w, b) in enumerate(self.layers):
            h = w @ h + b
            if k < len(self.layers) - 1:
                h = np.tanh(h)
        return h

    def get_parameters(self) -> np.ndarray:
        return np.concatenate([np.concatenate([w.ravel(), b]) for w, b in self.layers])

    def set_parameters(self, params) -> None:
        params = np.asarray(params, dtype=np.float64).ravel()
        expected = sum(w.size + b.size for w, b in self.layers)
        if params.size != expected:
            raise ValueError(f"Expected {expected} parameters, got {params.size}")
        layers, pos = [], 0
        for w, b in self.layers:
            new_w = params[pos:pos + w.size].reshape(w.shape).copy()
            pos += w.size
            new_b = params[pos:pos + b.size].copy()
            pos += b.size
            layers.append((new_w, new_b))
        self.layers = layers
