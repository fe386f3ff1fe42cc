"""
epsnfa - A non-deterministic finite state machine with empty moves.

The machine keeps a set of simultaneously active states, feeds input symbols
to all of them, follows epsilon (empty-symbol) moves to a fixed point and
fires ordered lifecycle events along the way.

Example usage:
    >>> from epsnfa import StateMachine
    >>> machine = StateMachine(
    ...     {"A": {"transitions": {"": "B"}}, "B": {"final": True}},
    ... )
    >>> machine.state()
    ('B',)
    >>> machine.accepted()
    True

For more control:
    >>> from epsnfa import StateMachine, Config, DanglingPolicy
    >>> machine = StateMachine(config=Config(dangling=DanglingPolicy.RAISE))
"""

from epsnfa.machine import StateMachine
from epsnfa.config import Config, DanglingPolicy
from epsnfa.automaton.state import EMPTY_SYMBOL, NULL_STATE, Many, Single, Target
from epsnfa.automaton.events import MachineEvent, StateEvent
from epsnfa.exceptions import (
    EpsNFAError,
    HandlerFailure,
    InvalidEventType,
    UnknownStateReference,
)

__version__ = "0.1.0"

__all__ = [
    # Main API
    "StateMachine",
    "EMPTY_SYMBOL",
    "NULL_STATE",
    "Target",
    "Single",
    "Many",
    # Events
    "StateEvent",
    "MachineEvent",
    # Configuration
    "Config",
    "DanglingPolicy",
    # Exceptions
    "EpsNFAError",
    "UnknownStateReference",
    "InvalidEventType",
    "HandlerFailure",
    # Version
    "__version__",
]
