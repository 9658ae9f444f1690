import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from gurobipy import GRB, Model, quicksum
from pyomo.environ import (
    Binary,
    ConcreteModel,
    Constraint,
    NonNegativeIntegers,
    NonNegativeReals,
    Objective,
    Var,
    maximize,
    value,
)
from pyomo.opt import SolverFactory, TerminationCondition

LOGGER = logging.getLogger(__name__)

SOLVERS = ("cbc", "glpk", "gurobi")


def ddsm_model(amb_costs, point_stations, point_demands, cover_fraction_target_t1,
               slack_weight, use_z_var=True):
    """
    Dynamic Double Standard Model (DDSM) for ambulance move-up.

    Inputs:
        amb_costs (np array, shape: [num_ambs, num_stations]) - cost of sending ambulance i to station j
        point_stations (pair of lists) - point_stations[k][p]: stations covering point set p within cover time k
        point_demands (pair of np vecs) - point_demands[k][p]: demand of point set p for cover time k
        cover_fraction_target_t1 (float): fraction of demand that must be covered within the first cover time
        slack_weight (float): penalty per unit of slack on the two coverage targets
        use_z_var (bool): count ambulances per station with auxiliary integer variables z

    Outputs:
        Gurobi model; the assignment variables are kept as ``model._x``
    """
    num_ambs, num_stations = amb_costs.shape
    A = list(range(num_ambs))            # Movable ambulances
    S = list(range(num_stations))        # Stations
    P1 = list(range(len(point_demands[0])))  # Point sets, first cover time
    P2 = list(range(len(point_demands[1])))  # Point sets, second cover time
    d1 = [float(v) for v in point_demands[0]]
    d2 = [float(v) for v in point_demands[1]]

    model = Model("Dynamic Double Standard Model")

    # Decision Variables
    x = model.addVars(A, S, vtype=GRB.BINARY, name="x")   # 1 if ambulance i goes to station j
    y11 = model.addVars(P1, vtype=GRB.BINARY, name="y11")  # 1 if point p covered once within t1
    y12 = model.addVars(P1, vtype=GRB.BINARY, name="y12")  # 1 if point p covered twice within t1
    y2 = model.addVars(P2, vtype=GRB.BINARY, name="y2")    # 1 if point p covered once within t2
    s1 = model.addVar(lb=0.0, name="s1")  # slack, t1 coverage
    s2 = model.addVar(lb=0.0, name="s2")  # slack, t2 coverage

    # Objective: double coverage at t1, minus travel cost, minus slack penalty
    model.setObjective(
        quicksum(d1[p] * y12[p] for p in P1)
        - quicksum(float(amb_costs[i, j]) * x[i, j] for i in A for j in S)
        - slack_weight * (s1 + s2),
        GRB.MAXIMIZE
    )

    # Constraints
    # 1. Each ambulance goes to exactly one station
    for i in A:
        model.addConstr(quicksum(x[i, j] for j in S) == 1, name=f"AmbAtOneStation_{i}")

    # 2. Double coverage only where there is single coverage
    for p in P1:
        model.addConstr(y11[p] >= y12[p], name=f"PointCoverOrder_{p}")

    # 3. Coverage targets
    model.addConstr(
        quicksum(d1[p] * y11[p] for p in P1) + s1 >= cover_fraction_target_t1 * sum(d1),
        name="DemandCoveredOnceT1"
    )
    model.addConstr(
        quicksum(d2[p] * y2[p] for p in P2) + s2 >= sum(d2),
        name="DemandCoveredOnceT2"
    )

    # 4. Coverage bounded by the ambulances at covering stations
    if use_z_var:
        z = model.addVars(S, vtype=GRB.INTEGER, lb=0, name="z")  # ambulances at station j
        for j in S:
            model.addConstr(z[j] == quicksum(x[i, j] for i in A), name=f"StationAmbCount_{j}")
        station_count = {j: z[j] for j in S}
    else:
        station_count = {j: quicksum(x[i, j] for i in A) for j in S}

    for p in P1:
        model.addConstr(
            y11[p] + y12[p] <= quicksum(station_count[j] for j in point_stations[0][p]),
            name=f"PointCoverCountT1_{p}"
        )
    for p in P2:
        model.addConstr(
            y2[p] <= quicksum(station_count[j] for j in point_stations[1][p]),
            name=f"PointCoverCountT2_{p}"
        )

    model._x = x
    return model


def ddsm_pyomo_model(amb_costs, point_stations, point_demands, cover_fraction_target_t1,
                     slack_weight, use_z_var=True) -> ConcreteModel:
    """Same program as ``ddsm_model`` as a pyomo ``ConcreteModel`` for CBC / GLPK."""
    num_ambs, num_stations = amb_costs.shape
    A = list(range(num_ambs))
    S = list(range(num_stations))
    P1 = list(range(len(point_demands[0])))
    P2 = list(range(len(point_demands[1])))
    d1 = [float(v) for v in point_demands[0]]
    d2 = [float(v) for v in point_demands[1]]

    m = ConcreteModel()

    # Variables
    m.x = Var(A, S, domain=Binary)
    m.y11 = Var(P1, domain=Binary)
    m.y12 = Var(P1, domain=Binary)
    m.y2 = Var(P2, domain=Binary)
    m.s1 = Var(domain=NonNegativeReals)
    m.s2 = Var(domain=NonNegativeReals)

    def _amb_at_one_station(m, i):
        return sum(m.x[i, j] for j in S) == 1
    m.AmbAtOneStation = Constraint(A, rule=_amb_at_one_station)

    def _point_cover_order(m, p):
        return m.y11[p] >= m.y12[p]
    m.PointCoverOrder = Constraint(P1, rule=_point_cover_order)

    m.DemandCoveredOnceT1 = Constraint(
        expr=sum(d1[p] * m.y11[p] for p in P1) + m.s1 >= cover_fraction_target_t1 * sum(d1)
    )
    m.DemandCoveredOnceT2 = Constraint(
        expr=sum(d2[p] * m.y2[p] for p in P2) + m.s2 >= sum(d2)
    )

    if use_z_var:
        m.z = Var(S, domain=NonNegativeIntegers)

        def _station_amb_count(m, j):
            return m.z[j] == sum(m.x[i, j] for i in A)
        m.StationAmbCount = Constraint(S, rule=_station_amb_count)

        def _count(m, j):
            return m.z[j]
    else:
        def _count(m, j):
            return sum(m.x[i, j] for i in A)

    def _cover_count_t1(m, p):
        return m.y11[p] + m.y12[p] <= sum(_count(m, j) for j in point_stations[0][p])
    m.PointCoverCountT1 = Constraint(P1, rule=_cover_count_t1)

    def _cover_count_t2(m, p):
        return m.y2[p] <= sum(_count(m, j) for j in point_stations[1][p])
    m.PointCoverCountT2 = Constraint(P2, rule=_cover_count_t2)

    m.Obj = Objective(
        expr=sum(d1[p] * m.y12[p] for p in P1)
        - sum(float(amb_costs[i, j]) * m.x[i, j] for i in A for j in S)
        - slack_weight * (m.s1 + m.s2),
        sense=maximize
    )
    return m


def _solve_gurobi(model_args, solver_options) -> Tuple[bool, str, Optional[np.ndarray]]:
    model = ddsm_model(*model_args)
    model.setParam("OutputFlag", 0)
    for key, val in solver_options.items():
        model.setParam(key, val)
    model.optimize()
    if model.Status != GRB.OPTIMAL:
        return False, f"gurobi status {model.Status}", None
    num_ambs, num_stations = model_args[0].shape
    x = model._x
    x_vals = np.array([[x[i, j].X for j in range(num_stations)] for i in range(num_ambs)])
    return True, "optimal", x_vals


def _solve_pyomo(solver_name, model_args, solver_options) -> Tuple[bool, str, Optional[np.ndarray]]:
    m = ddsm_pyomo_model(*model_args)
    solver = SolverFactory(solver_name)
    if solver is None or not solver.available(exception_flag=False):
        raise RuntimeError(f"Solver {solver_name} not available")
    for key, val in solver_options.items():
        solver.options[key] = val
    res = solver.solve(m, tee=False, load_solutions=False)
    term = res.solver.termination_condition
    if term != TerminationCondition.optimal:
        return False, str(term), None
    m.solutions.load_from(res)
    num_ambs, num_stations = model_args[0].shape
    x_vals = np.array([[value(m.x[i, j]) for j in range(num_stations)] for i in range(num_ambs)])
    return True, "optimal", x_vals


def solve_ddsm(amb_costs: np.ndarray,
               point_stations: Sequence[List[List[int]]],
               point_demands: Sequence[np.ndarray],
               *,
               cover_fraction_target_t1: float,
               slack_weight: float,
               use_z_var: bool = True,
               solver: str = "cbc",
               solver_options: Optional[Dict] = None,
               bin_tolerance: float = 1e-5) -> Tuple[Optional[np.ndarray], str]:
    """
    Build and solve the DDSM program.

    Returns:
        (station_assignments, status): the station index per ambulance, or
        None when the solver did not report an optimal solution.
    """
    if solver not in SOLVERS:
        raise ValueError(f"Unknown solver {solver!r}, expected one of {SOLVERS}")
    model_args = (np.asarray(amb_costs, dtype=float), point_stations, point_demands,
                  cover_fraction_target_t1, slack_weight, use_z_var)
    solver_options = solver_options or {}
    if solver == "gurobi":
        optimal, status, x_vals = _solve_gurobi(model_args, solver_options)
    else:
        optimal, status, x_vals = _solve_pyomo(solver, model_args, solver_options)
    if not optimal:
        return None, status

    max_violation = float(np.max(np.abs(x_vals - np.round(x_vals))))
    if max_violation > bin_tolerance:
        LOGGER.warning("DDSM binary constraint violation detected (max violation %.3g)", max_violation)

    return np.argmax(np.round(x_vals), axis=1), status
