"""Pipeline orchestration: dispatch, preview/confirm flow and runner."""

from .dispatcher import STRATEGY_PRIORITY, DispatchOutcome, SmartDispatcher, build_local_parsers
from .import_flow import FlowState, ImportFlow, InvalidTransition
from .runner import QuizImportRunner

__all__ = [
    "STRATEGY_PRIORITY",
    "DispatchOutcome",
    "SmartDispatcher",
    "build_local_parsers",
    "FlowState",
    "ImportFlow",
    "InvalidTransition",
    "QuizImportRunner",
]
