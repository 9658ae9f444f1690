import logging

import numpy as np
import pytest

from ems_moveup.encoding import StationOccupancyEncoder
from ems_moveup.models.approximators import FunctionApproximator, LinearApproximator
from ems_moveup.simulator.ambulance import Ambulance, AmbulanceStatus
from ems_moveup.simulator.events import Event, EventType
from ems_moveup.simulator.metrics import extract_all_metrics
from ems_moveup.simulator.moveup import is_movable, validate_moveup_decision
from ems_moveup.simulator.simulator import MoveUpSimulator, simulate
from ems_moveup.simulator.station import Station
from ems_moveup.strategies import LearnedPolicyStrategy, MoveUpLogger, MoveUpStrategy, NullStrategy


class FixedScores(FunctionApproximator):
    def __init__(self, scores, input_size):
        self.scores = np.asarray(scores, dtype=float)
        self._input_size = input_size

    @property
    def input_size(self):
        return self._input_size

    @property
    def output_size(self):
        return self.scores.size

    def forward(self, x):
        self._check_input(x)
        return self.scores


def idle_ambulance(index, station_index):
    amb = Ambulance(index, station_index)
    amb.status = AmbulanceStatus.IDLE_AT_STATION
    return amb


def test_strategy_interface_is_abstract():
    with pytest.raises(TypeError):
        MoveUpStrategy()

    class OnlyTriggers(MoveUpStrategy):
        def should_trigger_on_dispatch(self, state):
            return False

        def should_trigger_on_free(self, state):
            return True

    with pytest.raises(TypeError):
        OnlyTriggers()


def test_update_parameters_not_supported_by_default():
    class Minimal(MoveUpStrategy):
        def should_trigger_on_dispatch(self, state):
            return False

        def should_trigger_on_free(self, state):
            return False

        def decide_moveup(self, state, ambulance):
            return [], [], None

    with pytest.raises(NotImplementedError, match="Minimal"):
        Minimal().update_parameters({"x": 1})


def test_validate_moveup_decision(caplog):
    stations = [Station(0, 10), Station(1, 11), Station(2, 12)]
    a0, a1 = idle_ambulance(0, 0), idle_ambulance(1, 1)

    assert validate_moveup_decision([a0, a1], [stations[1], stations[2]])
    assert validate_moveup_decision([], [])

    with caplog.at_level(logging.WARNING):
        assert not validate_moveup_decision([a0], [stations[1], stations[2]])
        assert not validate_moveup_decision([a0, a0], [stations[1], stations[2]])
        assert not validate_moveup_decision([a0], [stations[0]])
    assert "rejected" in caplog.text

    a0.status = AmbulanceStatus.GOING_TO_CALL
    assert not is_movable(a0)
    assert not validate_moveup_decision([a0], [stations[1]])

    a1.event = Event(EventType.AMB_DISPATCHED, 0.0, ambulance=a1)
    assert not is_movable(a1)
    assert not validate_moveup_decision([a1], [stations[2]])


def test_apply_moveup_drops_status_quo_pairs(awake_state):
    sim = MoveUpSimulator(awake_state)
    amb = awake_state.ambulances[0]
    parent = Event(EventType.CONSIDER_MOVE_UP, awake_state.time, ambulance=amb)
    home = awake_state.stations[amb.station_index]
    other = awake_state.stations[(amb.station_index + 1) % awake_state.num_stations]

    assert sim.apply_moveup([amb], [home], parent) == 0
    assert sim.apply_moveup([amb], [home, other], parent) == 0
    assert amb.event is None

    assert sim.apply_moveup([amb], [other], parent) == 1
    assert amb.event.event_type == EventType.AMB_MOVES_UP_TO_STATION
    sim.step()
    assert amb.status == AmbulanceStatus.MOVING_UP_TO_STATION
    assert amb.station_index == other.index
    assert amb.num_relocations == 1


def test_null_strategy_never_relocates(base_state):
    logger = MoveUpLogger()
    completed = simulate(base_state, NullStrategy(), logger)

    assert completed
    assert sum(a.num_relocations for a in base_state.ambulances) == 0
    assert len(logger) > 0
    for entry in logger.entries:
        assert entry.strategy_type == "NullStrategy"
        assert all(d.from_station == d.to_station for d in entry.decisions)
        assert entry.strategy_output.sum() == 1.0


def test_null_strategy_parameters():
    strategy = NullStrategy()
    strategy.update_parameters({"trigger_on_dispatch": True, "trigger_on_free": False})
    assert strategy.should_trigger_on_dispatch(None)
    assert not strategy.should_trigger_on_free(None)
    with pytest.raises(ValueError):
        strategy.update_parameters({"speed": 2})


def test_copy_is_independent():
    strategy = NullStrategy()
    clone = strategy.copy()
    clone.update_parameters({"trigger_on_free": False})
    assert strategy.trigger_on_free
    assert clone.name == "NullStrategy"


def test_learned_strategy_picks_best_station_lowest_index_on_ties(awake_state):
    encoder = StationOccupancyEncoder.from_state(awake_state)
    strategy = LearnedPolicyStrategy(encoder, FixedScores([0.2, 0.9, 0.9, 0.1], encoder.input_size))
    amb = awake_state.ambulances[3]

    ambulances, stations, output = strategy.decide_moveup(awake_state, amb)
    assert ambulances == [amb]
    assert [s.index for s in stations] == [1]
    assert np.allclose(output, [0.2, 0.9, 0.9, 0.1])


def test_learned_strategy_checks_sizes(awake_state):
    encoder = StationOccupancyEncoder.from_state(awake_state)
    with pytest.raises(ValueError):
        LearnedPolicyStrategy(encoder, LinearApproximator(encoder.input_size + 1, encoder.output_size))
    with pytest.raises(ValueError):
        LearnedPolicyStrategy(encoder, LinearApproximator(encoder.input_size, encoder.output_size + 1))


def test_learned_strategy_runs_and_updates_weights(base_state):
    encoder = StationOccupancyEncoder.from_state(base_state)
    approximator = LinearApproximator(encoder.input_size, encoder.output_size, seed=1)
    strategy = LearnedPolicyStrategy(encoder, approximator)

    weights = np.zeros(approximator.num_parameters)
    strategy.update_parameters({"weights": weights, "trigger_on_dispatch": True})
    assert np.array_equal(approximator.get_parameters(), weights)
    assert strategy.trigger_on_dispatch

    assert simulate(base_state, strategy)
    assert base_state.num_calls_processed == len(base_state.calls)


def test_null_strategy_confirms_current_station(awake_state):
    amb = next(a for a in awake_state.ambulances if a.station_index == 2)
    ambulances, stations, _ = NullStrategy().decide_moveup(awake_state, amb)

    assert ambulances == [amb]
    assert [s.index for s in stations] == [2]
    sim = MoveUpSimulator(awake_state)
    parent = Event(EventType.CONSIDER_MOVE_UP, awake_state.time, ambulance=amb)
    assert sim.apply_moveup(ambulances, stations, parent) == 0
    assert amb.event is None


def test_null_strategy_runs_are_deterministic(base_state):
    strategy = NullStrategy()
    first, second = base_state.replicate(), base_state.replicate()
    simulate(first, strategy)
    simulate(second, strategy)
    assert extract_all_metrics(first) == extract_all_metrics(second)
