"""
Synthetic grid scenario: a square road network with stations, hospitals,
uniform demand and Poisson call arrivals.

Used by the scripts and the test-suite; everything is reproducible from the seed.
"""

from dataclasses import dataclass
from typing import List, Optional

import networkx as nx
import numpy as np
import pandas as pd

from ems_moveup.simulator.ambulance import Ambulance
from ems_moveup.simulator.call import CALL_COLUMNS, Call, Priority, calls_from_dataframe
from ems_moveup.simulator.demand import DemandModel
from ems_moveup.simulator.network import TravelNetwork
from ems_moveup.simulator.state import Infrastructure, SimulationState
from ems_moveup.simulator.station import Hospital, Station
from ems_moveup.simulator.stats import StatsConfig

DEFAULT_PRIORITY_PROBS = {Priority.HIGH: 0.5, Priority.MEDIUM: 0.3, Priority.LOW: 0.2}


def grid_network(rows: int, cols: int, edge_time: float = 2.0, edge_length: float = 1.0) -> nx.Graph:
    """``rows x cols`` grid with integer node ids, ``x``/``y`` coordinates and uniform edges."""
    grid = nx.grid_2d_graph(rows, cols)
    mapping = {(r, c): r * cols + c for r, c in grid.nodes}
    graph = nx.relabel_nodes(grid, mapping)
    for (r, c), node in mapping.items():
        graph.nodes[node]["x"] = float(c)
        graph.nodes[node]["y"] = float(r)
    nx.set_edge_attributes(graph, edge_time, "travel_time")
    nx.set_edge_attributes(graph, edge_length, "length")
    return graph


def generate_calls(nodes: List[int], num_calls: int, calls_per_hour: float,
                   rng: np.random.Generator, *, start_time: float = 0.0,
                   priority_probs=None, transport_prob: float = 0.8,
                   node_probs: Optional[np.ndarray] = None) -> pd.DataFrame:
    """Call table (``CALL_COLUMNS``) with exponential inter-arrival times."""
    priority_probs = priority_probs or DEFAULT_PRIORITY_PROBS
    priorities = list(priority_probs)
    probs = np.array([priority_probs[p] for p in priorities], dtype=float)
    probs = probs / probs.sum()

    gaps = rng.exponential(60.0 / calls_per_hour, size=num_calls)
    arrival_times = start_time + np.cumsum(gaps)
    return pd.DataFrame({
        "arrival_time": arrival_times,
        "node": rng.choice(nodes, size=num_calls, p=node_probs),
        "priority": [int(priorities[k]) for k in rng.choice(len(priorities), size=num_calls, p=probs)],
        "dispatch_delay": rng.uniform(0.5, 1.5, size=num_calls),
        "on_scene_duration": rng.uniform(8.0, 15.0, size=num_calls),
        "transport": rng.random(num_calls) < transport_prob,
        "handover_duration": rng.uniform(10.0, 20.0, size=num_calls),
    })[CALL_COLUMNS]


@dataclass
class Scenario:
    infrastructure: Infrastructure
    ambulances: List[Ambulance]
    calls: List[Call]

    def create_state(self, stats_config: Optional[StatsConfig] = None) -> SimulationState:
        return SimulationState(self.infrastructure, self.ambulances, self.calls, stats_config=stats_config)


def build_grid_scenario(rows: int = 6,
                        cols: int = 6,
                        *,
                        num_stations: int = 4,
                        num_hospitals: int = 1,
                        num_ambulances: int = 5,
                        num_calls: int = 60,
                        calls_per_hour: float = 4.0,
                        edge_time: float = 2.0,
                        edge_length: float = 1.0,
                        mobilisation_delay: float = 0.0,
                        seed: int = 0) -> Scenario:
    """
    Grid scenario with stations and hospitals at random distinct nodes.

    Demand is uniform over the nodes and split over the priorities with
    ``DEFAULT_PRIORITY_PROBS``; calls are generated with the same rates.
    Ambulances are assigned to stations round-robin.
    """
    if num_stations + num_hospitals > rows * cols:
        raise ValueError("Grid too small for the requested stations and hospitals")
    rng = np.random.default_rng(seed)
    graph = grid_network(rows, cols, edge_time, edge_length)
    network = TravelNetwork(graph)
    nodes = sorted(graph.nodes)

    chosen = rng.choice(nodes, size=num_stations + num_hospitals, replace=False)
    stations = [Station(j, int(n)) for j, n in enumerate(chosen[:num_stations])]
    hospitals = [Hospital(h, int(n)) for h, n in enumerate(chosen[num_stations:])]

    rate_per_minute = calls_per_hour / 60.0
    rates = {p: np.full(len(nodes), rate_per_minute * share / len(nodes))
             for p, share in DEFAULT_PRIORITY_PROBS.items()}
    demand = DemandModel(nodes, rates)

    infrastructure = Infrastructure(network, stations, hospitals, demand=demand,
                                    mobilisation_delay=mobilisation_delay)
    ambulances = [Ambulance(i, i % num_stations) for i in range(num_ambulances)]
    calls = calls_from_dataframe(generate_calls(nodes, num_calls, calls_per_hour, rng))
    return Scenario(infrastructure, ambulances, calls)
