import logging

import numpy as np
import pytest
from pyomo.opt import SolverFactory

from ems_moveup.models.ddsm_model import solve_ddsm
from ems_moveup.simulator.call import Priority
from ems_moveup.simulator.simulator import simulate
from ems_moveup.simulator.state import Infrastructure, SimulationState
from ems_moveup.simulator.synthetic import build_grid_scenario
from ems_moveup.strategies import ddsm as ddsm_module
from ems_moveup.strategies.ddsm import (
    DDSMStrategy,
    check_demand_consistency,
    ddsm_output_vector,
    get_coverage_data,
)

# Two stations, each alone covering one point set within t1; both cover everything within t2.
POINT_STATIONS = [[[0], [1]], [[0, 1]]]
POINT_DEMANDS = [np.array([2.0, 1.0]), np.array([3.0])]
COSTS = np.array([[0.0, 0.01], [0.01, 0.0]])


def cbc_available():
    solver = SolverFactory("cbc")
    return solver is not None and solver.available(exception_flag=False)


@pytest.mark.parametrize("kwargs", [
    {"cover_fraction_target_t1": 1.5},
    {"cover_fraction_target_t1": -0.1},
    {"travel_time_cost": 0.0},
    {"slack_weight": -1.0},
    {"cover_time_demand_priorities": (Priority.HIGH,)},
    {"solver": "cplex"},
    {"bin_tolerance": 0.5},
    {"fallback": "retry"},
])
def test_invalid_parameters(kwargs):
    with pytest.raises(ValueError):
        DDSMStrategy(**kwargs)


def test_update_parameters_restores_on_error():
    strategy = DDSMStrategy()
    with pytest.raises(ValueError):
        strategy.update_parameters({"slack_weight": -1.0})
    assert strategy.slack_weight == 1e9
    with pytest.raises(ValueError):
        strategy.update_parameters({"horizon": 3})
    strategy.update_parameters({"cover_fraction_target_t1": 0.8})
    assert strategy.cover_fraction_target_t1 == 0.8


def test_demand_consistency():
    check_demand_consistency([np.array([1.0, 2.0]), np.array([3.02])])
    with pytest.raises(AssertionError):
        check_demand_consistency([np.array([1.0]), np.array([1.5])])


def test_output_vector():
    assert np.allclose(ddsm_output_vector([0, 0, 2], 4), [2 / 3, 0.0, 1 / 3, 0.0])
    assert np.array_equal(ddsm_output_vector([], 3), np.zeros(3))


def test_coverage_data_scaled_to_total_demand(scenario):
    infra = scenario.infrastructure
    point_stations, point_demands = get_coverage_data(
        infra.demand_coverage, infra.demand, [Priority.HIGH, Priority.LOW], 0.0)

    total = infra.demand.mode_at(0.0).total_arrival_rate
    assert len(point_stations) == 2
    assert np.isclose(point_demands[0].sum(), total)
    assert np.isclose(point_demands[1].sum(), total)
    for stations in point_stations[0]:
        assert all(0 <= j < infra.num_stations for j in stations)


def test_initialize_requires_demand(scenario):
    infra = scenario.infrastructure
    bare = Infrastructure(infra.network, infra.stations, infra.hospitals)
    state = SimulationState(bare, scenario.ambulances, scenario.calls)
    with pytest.raises(ValueError):
        DDSMStrategy().initialize(state)


def test_initialize_requires_increasing_cover_times(base_state):
    strategy = DDSMStrategy(cover_time_demand_priorities=(Priority.LOW, Priority.HIGH))
    with pytest.raises(ValueError):
        strategy.initialize(base_state)


def test_gurobi_double_coverage():
    assignments, status = solve_ddsm(COSTS, POINT_STATIONS, POINT_DEMANDS,
                                     cover_fraction_target_t1=0.5, slack_weight=1e9, solver="gurobi")
    assert status == "optimal"
    assert list(assignments) == [0, 0]


def test_gurobi_full_t1_target_spreads_ambulances():
    assignments, _ = solve_ddsm(COSTS, POINT_STATIONS, POINT_DEMANDS,
                                cover_fraction_target_t1=1.0, slack_weight=1e9,
                                solver="gurobi", use_z_var=False)
    assert list(assignments) == [0, 1]


@pytest.mark.skipif(not cbc_available(), reason="CBC solver not installed")
def test_cbc_matches_gurobi():
    assignments, status = solve_ddsm(COSTS, POINT_STATIONS, POINT_DEMANDS,
                                     cover_fraction_target_t1=0.5, slack_weight=1e9, solver="cbc")
    assert status == "optimal"
    assert list(assignments) == [0, 0]


def test_unknown_solver():
    with pytest.raises(ValueError):
        solve_ddsm(COSTS, POINT_STATIONS, POINT_DEMANDS,
                   cover_fraction_target_t1=0.5, slack_weight=1e9, solver="cplex")


def test_fallback_keeps_ambulances_in_place(awake_state, monkeypatch, caplog):
    monkeypatch.setattr(ddsm_module, "solve_ddsm", lambda *args, **kwargs: (None, "infeasible"))
    strategy = DDSMStrategy(solver="gurobi")

    with caplog.at_level(logging.WARNING):
        ambulances, stations, output = strategy.decide_moveup(awake_state, awake_state.ambulances[0])
    assert "optimal" in caplog.text
    assert len(ambulances) == awake_state.num_ambulances
    assert [s.index for s in stations] == [a.station_index for a in ambulances]
    assert np.isclose(output.sum(), 1.0)


def test_fallback_raise(awake_state, monkeypatch):
    monkeypatch.setattr(ddsm_module, "solve_ddsm", lambda *args, **kwargs: (None, "infeasible"))
    strategy = DDSMStrategy(solver="gurobi", fallback="raise")
    with pytest.raises(RuntimeError):
        strategy.decide_moveup(awake_state, awake_state.ambulances[0])


def test_ddsm_simulation_with_gurobi():
    scenario = build_grid_scenario(num_calls=25, seed=11)
    state = scenario.create_state()
    assert simulate(state, DDSMStrategy(solver="gurobi", trigger_on_dispatch=True))
    assert state.num_calls_processed == len(state.calls)
