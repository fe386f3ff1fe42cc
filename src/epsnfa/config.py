"""Configuration for epsnfa state machines."""

from dataclasses import dataclass
from enum import Enum


class DanglingPolicy(Enum):
    """What the engine does with a destination that names a missing state.

    Such references appear after ``delete_state`` (which never repairs other
    states' transitions) or when targets are not validated on insert.
    """

    NULL_STATE = "null_state"  # Branch dies, a warning is logged
    RAISE = "raise"  # UnknownStateReference propagates out of input/reset


@dataclass
class Config:
    """Machine configuration.

    Attributes:
        strict_targets: Reject transitions whose targets are not (yet) states
            of the machine.
        dangling: Policy for unresolvable destinations met during a step.
    """

    strict_targets: bool = True
    dangling: DanglingPolicy = DanglingPolicy.NULL_STATE

    def __post_init__(self) -> None:
        if isinstance(self.dangling, str):
            self.dangling = DanglingPolicy(self.dangling)

    @classmethod
    def default(cls) -> "Config":
        """Return the default configuration."""
        return cls()

    @classmethod
    def lenient(cls) -> "Config":
        """Configuration that accepts forward and dangling references."""
        return cls(strict_targets=False, dangling=DanglingPolicy.NULL_STATE)
