import numpy as np
import pandas as pd
import pytest

from ems_moveup.simulator.ambulance import Ambulance, AmbulanceClass, AmbulanceStatus
from ems_moveup.simulator.call import Call, CallStatus, calls_from_dataframe, calls_to_dataframe
from ems_moveup.simulator.events import EventType
from ems_moveup.simulator.policies import ClassAwareDispatchPolicy
from ems_moveup.simulator.simulator import MoveUpSimulator, simulate
from ems_moveup.simulator.state import SimulationState
from ems_moveup.simulator.stats import StatsConfig
from ems_moveup.simulator.synthetic import build_grid_scenario
from ems_moveup.strategies.base import MoveUpStrategy


class RotatingStrategy(MoveUpStrategy):
    """Sends the triggering ambulance to the next station along."""

    def should_trigger_on_dispatch(self, state):
        return False

    def should_trigger_on_free(self, state):
        return True

    def decide_moveup(self, state, ambulance):
        target = state.stations[(ambulance.station_index + 1) % state.num_stations]
        return [ambulance], [target], None


class FailingStrategy(RotatingStrategy):
    def decide_moveup(self, state, ambulance):
        raise RuntimeError("boom")


def assert_idle_counts(state):
    for station in state.stations:
        idle = sum(1 for a in state.ambulances
                   if a.status == AmbulanceStatus.IDLE_AT_STATION and a.station_index == station.index)
        assert station.num_idle_ambs == idle, f"station {station.index}: {station.num_idle_ambs} != {idle}"


def test_run_processes_every_call(base_state):
    completed = MoveUpSimulator(base_state).run()

    assert completed
    assert base_state.complete
    assert base_state.num_calls_processed == len(base_state.calls)
    assert all(c.status == CallStatus.PROCESSED for c in base_state.calls)
    assert not base_state.queued_calls
    for call in base_state.calls:
        assert call.response_duration >= call.dispatch_delay


def test_clock_never_moves_backwards(base_state):
    sim = MoveUpSimulator(base_state, RotatingStrategy())
    times = []
    while (event := sim.step()) is not None:
        times.append(event.time)
        assert base_state.time == event.time
    assert times == sorted(times)
    assert base_state.complete


def test_idle_counts_match_ambulance_statuses(base_state):
    sim = MoveUpSimulator(base_state, RotatingStrategy())
    while sim.step() is not None:
        assert_idle_counts(base_state)
    assert sum(a.num_relocations for a in base_state.ambulances) > 0


def test_snapshots_agree_with_idle_counts(scenario):
    state = scenario.create_state(StatsConfig(period_duration=30.0, warm_up_duration=60.0))
    simulate(state, RotatingStrategy())

    captures = state.stats.captures
    assert len(captures) > 2
    assert captures[0].time == 60.0
    assert np.allclose(np.diff([c.time for c in captures[:-1]]), 30.0)
    for snap in captures:
        assert snap.station_idle_counts == [snap.station_idle_ambulances[j] for j in range(state.num_stations)]
    df = state.stats.to_dataframe()
    assert len(df) == len(captures)
    assert "station_0_idle" in df.columns


def test_replications_are_deterministic(base_state):
    first, second = base_state.replicate(), base_state.replicate()
    simulate(first, RotatingStrategy())
    simulate(second, RotatingStrategy())

    assert [c.response_duration for c in first.calls] == [c.response_duration for c in second.calls]
    assert [a.num_relocations for a in first.ambulances] == [a.num_relocations for a in second.ambulances]
    # the base state itself is untouched
    assert base_state.num_events_processed == 0


def test_stop_conditions(base_state):
    sim = MoveUpSimulator(base_state)

    assert sim.run(num_events=10) is False
    assert base_state.num_events_processed == 10

    stop = base_state.time + 120.0
    sim.run(until_time=stop)
    assert base_state.time <= stop
    assert sim.peek_event().time > stop

    stop = base_state.time + 60.0
    sim.run(duration=60.0)
    assert base_state.time <= stop
    assert sim.peek_event().time > stop

    assert sim.run() is True
    assert sim.step() is None


def test_conflicting_stop_conditions_rejected(base_state):
    sim = MoveUpSimulator(base_state)
    with pytest.raises(ValueError):
        sim.run(until_time=10.0, num_events=5)
    with pytest.raises(ValueError):
        sim.run(num_events=-1)


def test_simulate_passes_stop_condition(base_state):
    assert simulate(base_state, num_events=3) is False
    assert base_state.num_events_processed == 3


def test_unhandled_event_type_raises(base_state):
    sim = MoveUpSimulator(base_state)
    del sim.handlers[EventType.CALL_ARRIVES]
    with pytest.raises(ValueError):
        sim.run()


def test_strategy_errors_propagate(base_state):
    with pytest.raises(RuntimeError, match="boom"):
        simulate(base_state, FailingStrategy())


def test_mobilisation_delay():
    scenario = build_grid_scenario(mobilisation_delay=1.5, num_calls=30, seed=5)
    state = scenario.create_state()
    sim = MoveUpSimulator(state)
    seen = set()
    while (event := sim.step()) is not None:
        seen.add(event.event_type)

    assert EventType.AMB_MOBILISED in seen
    assert state.num_calls_processed == len(state.calls)
    assert sum(a.status_durations[AmbulanceStatus.MOBILISING] for a in state.ambulances) > 0


def test_ambulance_goes_to_sleep_after_shift(scenario):
    ambulances = [Ambulance(0, 0, shifts=[(0.0, 60.0)]), Ambulance(1, 1)]
    state = SimulationState(scenario.infrastructure, ambulances, scenario.calls)
    simulate(state)

    assert state.complete
    assert state.ambulances[0].status == AmbulanceStatus.SLEEPING
    assert state.ambulances[1].status == AmbulanceStatus.IDLE_AT_STATION
    assert state.num_calls_processed == len(state.calls)
    assert_idle_counts(state)


def test_class_aware_dispatch_prefers_bls_for_low_priority(scenario):
    ambulances = [Ambulance(i, i % 4, amb_class=AmbulanceClass.BLS if i % 2 else AmbulanceClass.ALS)
                  for i in range(5)]
    state = SimulationState(scenario.infrastructure, ambulances, scenario.calls)
    simulate(state, dispatch_policy=ClassAwareDispatchPolicy())

    assert state.num_calls_processed == len(state.calls)
    df = calls_to_dataframe(state.calls)
    assert len(df) == len(state.calls)
    assert (df["status"] == "PROCESSED").all()
    assert df["response_duration"].notna().all()


def test_calls_from_dataframe_requires_columns():
    df = pd.DataFrame({"arrival_time": [1.0], "node": [0]})
    with pytest.raises(ValueError, match="missing columns"):
        calls_from_dataframe(df)


class RecordingStrategy(MoveUpStrategy):
    """Triggers on every dispatch and free event and remembers what it was shown."""

    def __init__(self):
        self.seen = []

    def should_trigger_on_dispatch(self, state):
        return True

    def should_trigger_on_free(self, state):
        return True

    def decide_moveup(self, state, ambulance):
        self.seen.append((state.time, ambulance.index, ambulance.status))
        return [], [], None


def test_call_queued_while_fleet_asleep_is_served_on_wake_up(scenario):
    ambulances = [Ambulance(0, 0, shifts=[(30.0, np.inf)])]
    calls = [Call(0, 1.0, 0)]
    state = SimulationState(scenario.infrastructure, ambulances, calls)

    assert simulate(state)
    call = state.calls[0]
    assert call.status == CallStatus.PROCESSED
    assert call.was_queued
    assert call.dispatch_time == 30.0
    assert call.ambulance_index == 0
    assert not state.queued_calls
    assert state.num_calls_processed == 1
    assert_idle_counts(state)


def test_call_queued_while_returning_is_served_on_station_arrival(scenario):
    state = SimulationState(scenario.infrastructure, [Ambulance(0, 0)], [Call(0, 1.0, 5)])
    sim = MoveUpSimulator(state)
    amb = state.ambulances[0]
    while amb.event is None or amb.event.event_type != EventType.AMB_REACHES_STATION:
        assert sim.step() is not None

    late = Call(1, state.time, 7)
    state.queue_call(late)
    while amb.event.event_type == EventType.AMB_REACHES_STATION:
        sim.step()

    assert amb.event.event_type == EventType.AMB_DISPATCHED
    assert amb.event.call is late
    assert not state.queued_calls
    sim.run()
    assert late.status == CallStatus.PROCESSED
    assert_idle_counts(state)


def test_sleep_pending_ambulance_is_not_dispatched(awake_state):
    amb = awake_state.ambulances[0]
    assert amb.is_dispatchable()
    amb.sleep_pending = True
    assert not amb.is_dispatchable()


def test_ambulance_takes_no_calls_after_shift_end(scenario):
    ambulances = [Ambulance(0, 0, shifts=[(0.0, 20.0)]), Ambulance(1, 1)]
    calls = [Call(i, 5.0 * i + 1.0, (7 * i) % 36) for i in range(12)]
    state = SimulationState(scenario.infrastructure, ambulances, calls)

    assert simulate(state)
    assert state.num_calls_processed == len(calls)
    assert any(c.was_queued for c in calls)
    served_by_first = [c for c in calls if c.ambulance_index == 0]
    assert served_by_first
    assert all(c.dispatch_time <= 20.0 for c in served_by_first)
    assert state.ambulances[0].status == AmbulanceStatus.SLEEPING
    assert_idle_counts(state)


def test_move_up_considered_at_trigger_instant_after_queued_events(base_state):
    strategy = RecordingStrategy()
    sim = MoveUpSimulator(base_state, strategy)
    processed = set()
    considered = 0
    while (event := sim.step()) is not None:
        if event.event_type == EventType.CONSIDER_MOVE_UP:
            parent = event.parent
            assert event.time == parent.time
            assert parent.event_type in (EventType.AMB_DISPATCHED, EventType.AMB_BECOMES_FREE)
            assert id(parent) in processed
            time, index, status = strategy.seen[-1]
            assert time == event.time
            assert index == parent.ambulance.index
            if parent.event_type == EventType.AMB_BECOMES_FREE:
                # AMB_RETURNS_TO_STATION was queued first at the same instant
                assert status == AmbulanceStatus.RETURNING_TO_STATION
            elif parent.call.ambulance_arrival_time != event.time:
                assert status == AmbulanceStatus.GOING_TO_CALL
            considered += 1
        processed.add(id(event))

    assert considered == len(strategy.seen)
    # every dispatch triggers; a free event only does when no queued call is handed over
    assert considered >= len(base_state.calls)
