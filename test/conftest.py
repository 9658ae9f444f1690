import pytest

from ems_moveup.simulator.simulator import MoveUpSimulator
from ems_moveup.simulator.synthetic import build_grid_scenario


@pytest.fixture
def scenario():
    return build_grid_scenario(rows=6, cols=6, num_stations=4, num_ambulances=5,
                               num_calls=60, calls_per_hour=4.0, seed=3)


@pytest.fixture
def base_state(scenario):
    return scenario.create_state()


@pytest.fixture
def awake_state(scenario):
    """State after the initial wake-up events: every ambulance idle at its station."""
    state = scenario.create_state()
    MoveUpSimulator(state).run(num_events=state.num_ambulances)
    return state
