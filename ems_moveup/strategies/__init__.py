from ems_moveup.simulator.moveup import is_movable, validate_moveup_decision
from ems_moveup.strategies.base import MoveUpStrategy
from ems_moveup.strategies.ddsm import DDSMStrategy
from ems_moveup.strategies.decision_log import MoveUpDecision, MoveUpLogEntry, MoveUpLogger
from ems_moveup.strategies.learned import LearnedPolicyStrategy
from ems_moveup.strategies.null import NullStrategy

__all__ = [
    "MoveUpStrategy",
    "is_movable",
    "validate_moveup_decision",
    "NullStrategy",
    "LearnedPolicyStrategy",
    "DDSMStrategy",
    "MoveUpDecision",
    "MoveUpLogEntry",
    "MoveUpLogger",
]
