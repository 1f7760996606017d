"""
Scenario Recording and Replay System.

This package records browser actions performed in a session as named
scenarios and replays them later, with variable substitution, against the
same or a freshly opened session.
"""

from .dispatcher import ActionDispatcher
from .errors import ErrorKind, ScenarioError
from .models import ActionKind, OperationResult, ReplayReport, Scenario, parse_step
from .player import ReplayEngine
from .recorder import RecordingController
from .store import ScenarioStore
from .variables import VariableSubstitutionEngine

__all__ = [
    "ActionDispatcher",
    "ActionKind",
    "ErrorKind",
    "OperationResult",
    "RecordingController",
    "ReplayEngine",
    "ReplayReport",
    "Scenario",
    "ScenarioError",
    "ScenarioStore",
    "VariableSubstitutionEngine",
    "parse_step",
]
