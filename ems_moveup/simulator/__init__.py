"""
Ambulance Move-Up Simulator Package

This package provides a discrete-event simulation of emergency medical services
operations (call arrival, dispatch, on-scene treatment, hospital transport and
return to station) with a pluggable move-up decision point: after an ambulance
is dispatched or becomes free, a strategy may relocate free ambulances to other
stations.

Main Components:
- MoveUpSimulator: Core simulator engine
- SimulationState / Infrastructure: Per-run state and shared scenario data
- Ambulance, Call, Station, Hospital: Simulation entities
- TravelNetwork: Road network travel times
- DemandModel / DemandCoverage: Demand and station coverage for optimisation strategies
- Metrics and replication helpers
"""

from ems_moveup.simulator.ambulance import Ambulance, AmbulanceClass, AmbulanceStatus
from ems_moveup.simulator.call import Call, CallStatus, Priority, calls_from_dataframe
from ems_moveup.simulator.demand import DemandCoverage, DemandModel
from ems_moveup.simulator.events import Event, EventQueue, EventType
from ems_moveup.simulator.metrics import SimulationMetrics, extract_all_metrics, get_metric
from ems_moveup.simulator.network import TravelNetwork
from ems_moveup.simulator.policies import NearestDispatchPolicy
from ems_moveup.simulator.replication import create_simulation_instance, run_replications, split_calls
from ems_moveup.simulator.simulator import MoveUpSimulator, simulate
from ems_moveup.simulator.state import Infrastructure, SimulationState
from ems_moveup.simulator.station import Hospital, Station
from ems_moveup.simulator.stats import StatsConfig

__all__ = [
    'MoveUpSimulator',
    'simulate',
    'SimulationState',
    'Infrastructure',
    'Ambulance',
    'AmbulanceClass',
    'AmbulanceStatus',
    'Call',
    'CallStatus',
    'Priority',
    'calls_from_dataframe',
    'Station',
    'Hospital',
    'TravelNetwork',
    'DemandModel',
    'DemandCoverage',
    'Event',
    'EventQueue',
    'EventType',
    'NearestDispatchPolicy',
    'StatsConfig',
    'SimulationMetrics',
    'extract_all_metrics',
    'get_metric',
    'create_simulation_instance',
    'run_replications',
    'split_calls',
]
