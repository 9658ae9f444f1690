"""
Adapter exposing a trained stable-baselines3 policy as a function approximator.
"""

import numpy as np
import torch as th
from stable_baselines3 import PPO

from ems_moveup.models.approximators import FunctionApproximator


class SB3PolicyApproximator(FunctionApproximator):
    """
    Station scores from a stable-baselines3 model with a ``Discrete`` action space.

    The scores are the policy's action probabilities, so ``LearnedPolicyStrategy``
    takes the most probable station (the deterministic action).
    """

    def __init__(self, model) -> None:
        obs_space = model.observation_space
        act_space = model.action_space
        if not hasattr(act_space, "n"):
            raise ValueError("SB3PolicyApproximator needs a Discrete action space")
        self.model = model
        self._input_size = int(np.prod(obs_space.shape))
        self._output_size = int(act_space.n)

    @classmethod
    def load(cls, path: str, algorithm=None) -> "SB3PolicyApproximator":
        if algorithm is None:
            algorithm = PPO
        return cls(algorithm.load(path, device="cpu"))

    @property
    def input_size(self) -> int:
        return self._input_size

    @property
    def output_size(self) -> int:
        return self._output_size

    def forward(self, x) -> np.ndarray:
        x = self._check_input(x).astype(np.float32)
        policy = self.model.policy
        obs_tensor, _ = policy.obs_to_tensor(x)
        with th.no_grad():
            probs = policy.get_distribution(obs_tensor).distribution.probs
        return probs.cpu().numpy()[0]
