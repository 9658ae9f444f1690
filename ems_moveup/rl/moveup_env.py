"""
Gymnasium environment for learning move-up decisions.
The agent decides where an ambulance goes each time the simulator considers a move-up.
"""

from typing import List, Optional, Sequence

import gymnasium as gym
import numpy as np
from gymnasium import spaces

from ems_moveup.encoding.encoders import StationOccupancyEncoder
from ems_moveup.simulator.call import Call
from ems_moveup.simulator.events import EventType
from ems_moveup.simulator.moveup import is_movable
from ems_moveup.simulator.simulator import MoveUpSimulator
from ems_moveup.simulator.state import SimulationState
from ems_moveup.strategies.base import Decision, MoveUpStrategy


class AgentMoveUpStrategy(MoveUpStrategy):
    """
    Strategy whose decision is set from outside before each ``CONSIDER_MOVE_UP``
    is handled. With no pending action it keeps the status quo.
    """

    def __init__(self, trigger_on_dispatch: bool = False, trigger_on_free: bool = True) -> None:
        self.trigger_on_dispatch = trigger_on_dispatch
        self.trigger_on_free = trigger_on_free
        self.pending_station: Optional[int] = None

    def should_trigger_on_dispatch(self, state) -> bool:
        return self.trigger_on_dispatch

    def should_trigger_on_free(self, state) -> bool:
        return self.trigger_on_free

    def decide_moveup(self, state, ambulance) -> Decision:
        station_index = ambulance.station_index if self.pending_station is None else self.pending_station
        self.pending_station = None
        output = np.zeros(state.num_stations, dtype=np.float32)
        output[station_index] = 1.0
        return [ambulance], [state.stations[station_index]], output


class MoveUpEnv(gym.Env):
    """
    A move-up environment on top of ``MoveUpSimulator``.

    The environment:
    1. Runs the simulation until a move-up is considered for a movable ambulance
    2. Presents the encoded state seen from that ambulance
    3. Sends the ambulance to the chosen station (choosing its own station keeps it in place)
    4. Rewards each call reached within ``response_threshold`` minutes until the next decision

    Observation space:
    - Box of size ``encoder.input_size``

    Action space:
    - Discrete space of station indices
    """

    metadata = {"render_modes": ["human"]}

    def __init__(
        self,
        base_state: SimulationState,
        encoder=None,
        *,
        call_sets: Optional[Sequence[Sequence[Call]]] = None,
        trigger_on_dispatch: bool = False,
        trigger_on_free: bool = True,
        response_threshold: float = 8.0,
        late_penalty: float = 0.0,
        max_steps: Optional[int] = None,
        verbose: bool = False,
        render_mode: Optional[str] = None,
    ):
        """
        Args:
            base_state: Unsimulated state copied at every reset
            encoder: State encoder (defaults to ``StationOccupancyEncoder``)
            call_sets: Call lists to sample an episode from (defaults to the base state's calls)
            trigger_on_dispatch / trigger_on_free: When move-ups are considered
            response_threshold: Response time (minutes) below which a call earns +1
            late_penalty: Subtracted for every call reached at or after the threshold
            max_steps: Decisions per episode before truncation
            verbose: Print a line per decision
            render_mode: Only 'human' is supported
        """
        self.base_state = base_state
        self.encoder = encoder or StationOccupancyEncoder.from_state(base_state)
        self.call_sets: List[Optional[List[Call]]] = (
            [list(c) for c in call_sets] if call_sets else [None]
        )
        self.response_threshold = response_threshold
        self.late_penalty = late_penalty
        self.max_steps = max_steps
        self.verbose = verbose
        self.render_mode = render_mode

        if self.encoder.output_size != base_state.num_stations:
            raise ValueError("Encoder output size must equal the number of stations")

        self.strategy = AgentMoveUpStrategy(trigger_on_dispatch, trigger_on_free)
        self.simulator: Optional[MoveUpSimulator] = None
        self.decision_ambulance = None
        self.steps = 0
        self._rewarded_calls = 0

        self.observation_space = spaces.Box(
            low=-np.inf, high=np.inf, shape=(self.encoder.input_size,), dtype=np.float32
        )
        self.action_space = spaces.Discrete(base_state.num_stations)

    @property
    def state(self) -> SimulationState:
        return self.simulator.state

    def reset(self, seed=None, options=None):
        super().reset(seed=seed)
        calls = self.call_sets[int(self.np_random.integers(len(self.call_sets)))]
        state = self.base_state.replicate(calls=calls)
        self.simulator = MoveUpSimulator(state, self.strategy)
        self.steps = 0
        self._rewarded_calls = 0
        self.decision_ambulance = None

        done = self._advance_to_decision()
        return self._build_observation(), {"done": done}

    def step(self, action):
        if self.decision_ambulance is None:
            raise RuntimeError("step() called without a pending decision; call reset()")
        amb = self.decision_ambulance
        self.strategy.pending_station = int(action)
        event = self.simulator.step()
        assert event.event_type == EventType.CONSIDER_MOVE_UP
        self.steps += 1

        if self.verbose:
            print(f"[{self.state.time:8.1f}] ambulance {amb.index} -> station {int(action)}")

        terminated = self._advance_to_decision()
        reward = self._collect_reward()
        truncated = self.max_steps is not None and self.steps >= self.max_steps and not terminated
        info = {"time": self.state.time, "num_calls_processed": self.state.num_calls_processed}
        return self._build_observation(), reward, terminated, truncated, info

    def _advance_to_decision(self) -> bool:
        """Step the simulator up to the next move-up for a movable ambulance. True if the run ended."""
        sim = self.simulator
        while True:
            event = sim.peek_event()
            if event is None:
                sim.step()
                self.decision_ambulance = None
                return True
            if event.event_type == EventType.CONSIDER_MOVE_UP and is_movable(event.ambulance):
                self.decision_ambulance = event.ambulance
                return False
            sim.step()

    def _collect_reward(self) -> float:
        responded = self.state.responded_calls[self._rewarded_calls:]
        self._rewarded_calls = len(self.state.responded_calls)
        on_time = sum(1 for c in responded if c.response_duration < self.response_threshold)
        late = len(responded) - on_time
        return float(on_time - self.late_penalty * late)

    def _build_observation(self) -> np.ndarray:
        if self.decision_ambulance is None:
            return np.zeros(self.encoder.input_size, dtype=np.float32)
        return self.encoder.encode_state(self.state, self.decision_ambulance.index).astype(np.float32)

    def render(self):
        if self.render_mode == "human" and self.simulator is not None:
            state = self.state
            idle = [s.num_idle_ambs for s in state.stations]
            print(f"t={state.time:.1f} idle per station={idle} queued={len(state.queued_calls)}")
