import pytest

from ems_moveup.simulator.replication import create_simulation_instance, run_replications, split_calls
from ems_moveup.strategies import MoveUpLogger, NullStrategy


def test_split_calls():
    parts = split_calls(list(range(10)), 3)
    assert [len(p) for p in parts] == [4, 3, 3]
    assert sum(parts, []) == list(range(10))
    assert split_calls([1, 2], 4) == [[1], [2], [], []]
    with pytest.raises(ValueError):
        split_calls([1, 2], 0)


def test_instances_are_independent(base_state):
    first = create_simulation_instance(base_state)
    second = create_simulation_instance(base_state, base_state.calls[:10])

    assert first.infrastructure is base_state.infrastructure
    assert first.ambulances[0] is not base_state.ambulances[0]
    assert first.calls[0] is not base_state.calls[0]
    assert first.stations[0] is not second.stations[0]
    assert len(second.calls) == 10


def test_run_replications(base_state):
    call_sets = split_calls(base_state.calls, 3)
    df = run_replications(base_state, NullStrategy(), call_sets=call_sets, show_progress=False)

    assert list(df["replication"]) == [0, 1, 2]
    assert df["completed"].all()
    assert list(df["num_calls"]) == [len(c) for c in call_sets]
    assert list(df["num_calls_processed"]) == [len(c) for c in call_sets]
    assert (df["num_relocations"] == 0).all()
    assert base_state.num_events_processed == 0


def test_num_replications_without_call_sets(base_state):
    df = run_replications(base_state, num_replications=2, show_progress=False)
    assert len(df) == 2
    # same calls, same outcome
    assert df["avg_response_time"].nunique() == 1


def test_parameter_sets_validation(base_state):
    params = [{"trigger_on_free": False}]
    with pytest.raises(ValueError):
        run_replications(base_state, NullStrategy(), parameter_sets=params, show_progress=False)
    with pytest.raises(ValueError):
        run_replications(base_state, None, share_strategy=False, parameter_sets=params, show_progress=False)
    with pytest.raises(ValueError):
        run_replications(base_state, NullStrategy(), num_replications=2, share_strategy=False,
                         parameter_sets=params, show_progress=False)
    with pytest.raises(ValueError):
        run_replications(base_state, call_sets=[base_state.calls], num_replications=2, show_progress=False)


def test_parameter_sets_apply_to_copies(base_state):
    strategy = NullStrategy()
    logger = MoveUpLogger()
    run_replications(base_state, strategy, num_replications=2, share_strategy=False,
                     parameter_sets=[{"trigger_on_free": False}, {"trigger_on_free": False}],
                     logger=logger, show_progress=False)

    assert len(logger) == 0
    assert strategy.trigger_on_free
