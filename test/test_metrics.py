from types import SimpleNamespace

import numpy as np
import pytest

from ems_moveup.simulator.ambulance import AmbulanceStatus
from ems_moveup.simulator.call import Call, CallStatus
from ems_moveup.simulator.metrics import (
    extract_all_metrics,
    get_ambulance_utilization,
    get_avg_response_time,
    get_max_response_time,
    get_metric,
    get_percentile_response_time,
    get_survival_rate,
)
from ems_moveup.simulator.simulator import simulate


def processed_call(index, arrival, reached):
    call = Call(index, arrival, 0)
    call.status = CallStatus.PROCESSED
    call.ambulance_arrival_time = reached
    return call


def test_response_time_metrics():
    calls = [processed_call(0, 0.0, 8.0), processed_call(1, 10.0, 17.9), processed_call(2, 20.0, 24.0)]
    unfinished = Call(3, 30.0, 0)
    unfinished.status = CallStatus.ON_SCENE
    unfinished.ambulance_arrival_time = 100.0
    state = SimpleNamespace(calls=calls + [unfinished])

    assert np.isclose(get_avg_response_time(state), (8.0 + 7.9 + 4.0) / 3)
    # reached in exactly the threshold does not count
    assert np.isclose(get_survival_rate(state, threshold=8.0), 2 / 3)
    assert np.isclose(get_max_response_time(state), 8.0)
    assert np.isclose(get_percentile_response_time(state, percentile=100.0), 8.0)
    assert np.isclose(get_metric(state, "survival_rate", threshold=10.0), 1.0)


def test_empty_metrics():
    state = SimpleNamespace(calls=[])
    assert np.isnan(get_avg_response_time(state))
    assert get_survival_rate(state) == 0.0
    assert get_max_response_time(state) == float("inf")
    assert get_percentile_response_time(state) == float("inf")


def test_invalid_metric_requests():
    state = SimpleNamespace(calls=[])
    with pytest.raises(ValueError):
        get_percentile_response_time(state, percentile=101.0)
    with pytest.raises(ValueError, match="Available metrics"):
        get_metric(state, "happiness")


def test_extract_all_metrics(base_state):
    simulate(base_state)
    metrics = extract_all_metrics(base_state, survival_threshold=10.0, percentile=50.0)

    assert metrics.num_calls_processed == len(base_state.calls)
    assert 0.0 < metrics.utilization < 1.0
    assert 0.0 <= metrics.survival_rate <= 1.0
    assert metrics.num_relocations == 0
    assert metrics.total_distance > 0.0
    assert metrics.percentile_response_time <= metrics.max_response_time
    assert metrics.as_dict()["survival_threshold"] == 10.0
    assert "Avg Response Time" in str(metrics)


def fleet_member(**durations):
    status_durations = {s: 0.0 for s in AmbulanceStatus}
    for name, value in durations.items():
        status_durations[AmbulanceStatus[name]] = value
    return SimpleNamespace(status_durations=status_durations)


def test_utilization_ignores_off_shift_time():
    ambulances = [
        fleet_member(AT_CALL=30.0, IDLE_AT_STATION=70.0),
        # on shift for the last 20 minutes only
        fleet_member(SLEEPING=80.0, GOING_TO_CALL=10.0, IDLE_AT_STATION=10.0),
    ]
    state = SimpleNamespace(ambulances=ambulances, num_ambulances=2,
                            start_time=0.0, end_time=100.0, time=100.0)
    assert np.isclose(get_ambulance_utilization(state), 40.0 / 120.0)

    asleep = SimpleNamespace(ambulances=[fleet_member(SLEEPING=100.0)], num_ambulances=1,
                             start_time=0.0, end_time=100.0, time=100.0)
    assert get_ambulance_utilization(asleep) == 0.0
