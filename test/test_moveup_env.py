import numpy as np
import pytest

from ems_moveup.rl import MoveUpEnv
from ems_moveup.simulator.replication import split_calls


def test_reset_returns_observation(base_state):
    env = MoveUpEnv(base_state)
    obs, info = env.reset(seed=0)

    assert obs.shape == env.observation_space.shape
    assert obs.dtype == np.float32
    assert env.action_space.n == base_state.num_stations
    assert not info["done"]
    assert env.decision_ambulance is not None


def test_step_requires_pending_decision(base_state):
    env = MoveUpEnv(base_state)
    with pytest.raises(RuntimeError):
        env.step(0)


def test_status_quo_episode_rewards_on_time_calls(base_state):
    env = MoveUpEnv(base_state, response_threshold=8.0)
    env.reset(seed=0)

    total_reward, steps, terminated = 0.0, 0, False
    while not terminated:
        obs, reward, terminated, truncated, info = env.step(env.decision_ambulance.station_index)
        total_reward += reward
        steps += 1
        assert not truncated

    state = env.state
    assert state.complete
    assert steps > 0
    assert sum(a.num_relocations for a in state.ambulances) == 0
    on_time = sum(1 for c in state.responded_calls if c.response_duration < 8.0)
    assert total_reward == on_time
    assert info["num_calls_processed"] == len(state.calls)


def test_random_actions_relocate(base_state):
    env = MoveUpEnv(base_state, late_penalty=0.5)
    env.reset(seed=1)
    rng = np.random.default_rng(1)

    terminated = False
    while not terminated:
        _, _, terminated, _, _ = env.step(int(rng.integers(env.action_space.n)))

    assert env.state.num_calls_processed == len(env.state.calls)
    assert sum(a.num_relocations for a in env.state.ambulances) > 0


def test_truncation_and_call_sets(base_state):
    call_sets = split_calls(base_state.calls, 2)
    env = MoveUpEnv(base_state, call_sets=call_sets, max_steps=2)
    env.reset(seed=3)
    assert len(env.state.calls) in {len(c) for c in call_sets}

    _, _, terminated, truncated, _ = env.step(0)
    assert not truncated
    _, _, terminated, truncated, _ = env.step(0)
    assert truncated and not terminated
