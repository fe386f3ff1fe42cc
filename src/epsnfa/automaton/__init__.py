"""Automaton module: state table, events and transition engine."""

from epsnfa.automaton.state import EMPTY_SYMBOL, NULL_STATE, Many, Single, State, Target
from epsnfa.automaton.table import StateTable
from epsnfa.automaton.events import EventDispatcher, MachineEvent, StateEvent
from epsnfa.automaton.engine import MachineRecord, StepResult, TransitionEngine

__all__ = [
    "EMPTY_SYMBOL",
    "NULL_STATE",
    "State",
    "Target",
    "Single",
    "Many",
    "StateTable",
    "EventDispatcher",
    "StateEvent",
    "MachineEvent",
    "MachineRecord",
    "StepResult",
    "TransitionEngine",
]
