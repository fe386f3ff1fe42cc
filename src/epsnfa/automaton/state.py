"""State and transition-target definitions."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Iterable, Optional, Tuple

# Reserved id of the null state: a dead branch, never final, never active.
NULL_STATE = None

# Reserved input symbol for epsilon (empty) moves.
EMPTY_SYMBOL = ""

StateId = Hashable
Symbol = Hashable


class Target(ABC):
    """Destination of a transition: one state or an ordered group of states.

    Use :meth:`Target.of` to build one from a user-supplied value.
    """

    @property
    @abstractmethod
    def ids(self) -> Tuple[StateId, ...]:
        """The destination ids, in order."""

    @classmethod
    def of(cls, value: Any) -> "Target":
        """Resolve a raw destination into a target.

        Lists and tuples become :class:`Many` (order kept, duplicates dropped);
        any other value, including an existing target, is a single id.
        """
        if isinstance(value, Target):
            return value
        if isinstance(value, (list, tuple)):
            return Many.from_iterable(value)
        return Single(value)


@dataclass(frozen=True)
class Single(Target):
    """Deterministic destination."""

    state_id: StateId

    @property
    def ids(self) -> Tuple[StateId, ...]:
        return (self.state_id,)

    def __repr__(self) -> str:
        return f"Single({self.state_id!r})"


@dataclass(frozen=True)
class Many(Target):
    """Non-deterministic destination: every id is entered, in order."""

    state_ids: Tuple[StateId, ...]

    @classmethod
    def from_iterable(cls, values: Iterable[StateId]) -> "Many":
        seen = []
        for value in values:
            if value not in seen:
                seen.append(value)
        return cls(tuple(seen))

    @property
    def ids(self) -> Tuple[StateId, ...]:
        return self.state_ids

    def __repr__(self) -> str:
        return f"Many({list(self.state_ids)!r})"


@dataclass
class State:
    """A state of the automaton.

    Attributes:
        id: The state id.
        is_final: Whether being in this state makes the machine accept.
        transitions: Symbol to destination mapping. An entry for
            ``EMPTY_SYMBOL`` is an explicit epsilon move.
    """

    id: StateId
    is_final: bool = False
    transitions: Dict[Symbol, Target] = field(default_factory=dict)

    def target(self, symbol: Symbol) -> Optional[Target]:
        """Return the explicit target for ``symbol``, or None."""
        return self.transitions.get(symbol)

    def has_epsilon_moves(self) -> bool:
        return EMPTY_SYMBOL in self.transitions
