"""
Export state machine.

Lifecycle: IDLE → RESOLVING → CUTTING → MERGING → DONE
FAILED is reachable from every non-terminal state.

INVARIANT: Terminal states (DONE, FAILED) are immutable. Once an export
reaches one, no transition is allowed.
"""

from enum import Enum
from typing import FrozenSet, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict

from ..errors import ValidationError


class ExportState(str, Enum):
    """Export pipeline state."""

    IDLE = "idle"  # Snapshot not yet taken
    RESOLVING = "resolving"  # Determining the output format
    CUTTING = "cutting"  # Running cut i of n
    MERGING = "merging"  # Concatenating cut outputs
    DONE = "done"  # Every stage succeeded
    FAILED = "failed"  # A stage failed (terminal)


class InvalidStateTransitionError(ValidationError):
    """Raised when attempting an illegal export state transition."""

    def __init__(self, current_state: str, target_state: str):
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(f"Invalid export state transition: {current_state} -> {target_state}")


TERMINAL_EXPORT_STATES: FrozenSet[ExportState] = frozenset({
    ExportState.DONE,
    ExportState.FAILED,
})


_EXPORT_TRANSITIONS: Set[Tuple[ExportState, ExportState]] = {
    (ExportState.IDLE, ExportState.RESOLVING),
    (ExportState.RESOLVING, ExportState.CUTTING),

    # Cutting without merge finishes directly
    (ExportState.CUTTING, ExportState.MERGING),
    (ExportState.CUTTING, ExportState.DONE),
    (ExportState.MERGING, ExportState.DONE),

    # Failure from any non-terminal state
    (ExportState.IDLE, ExportState.FAILED),
    (ExportState.RESOLVING, ExportState.FAILED),
    (ExportState.CUTTING, ExportState.FAILED),
    (ExportState.MERGING, ExportState.FAILED),
}


def is_export_terminal(state: ExportState) -> bool:
    return state in TERMINAL_EXPORT_STATES


def can_transition_export(from_state: ExportState, to_state: ExportState) -> bool:
    """
    Check if an export state transition is legal.

    Staying in CUTTING is allowed (advancing from cut i to cut i+1).
    """
    if from_state == to_state:
        return not is_export_terminal(from_state)
    if is_export_terminal(from_state):
        return False
    return (from_state, to_state) in _EXPORT_TRANSITIONS


def validate_export_transition(from_state: ExportState, to_state: ExportState) -> None:
    """
    Raises:
        InvalidStateTransitionError: If the transition is not allowed
    """
    if not can_transition_export(from_state, to_state):
        raise InvalidStateTransitionError(from_state.value, to_state.value)


class ExportFailure(BaseModel):
    """Which stage failed, on which segment, and why."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    stage: ExportState
    message: str
    segment_number: Optional[int] = None  # 1-based, cutting stage only
    segment_id: Optional[str] = None
    exit_code: Optional[int] = None


class ExportStatus(BaseModel):
    """Observable state of an export run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    state: ExportState = ExportState.IDLE

    # Cutting(current of total), 1-based
    current: int = 0
    total: int = 0

    failure: Optional[ExportFailure] = None

    def advance(self, to_state: ExportState, **updates) -> "ExportStatus":
        """
        Return the status after a transition.

        Raises:
            InvalidStateTransitionError: If the transition is illegal
        """
        validate_export_transition(self.state, to_state)
        return self.model_copy(update={"state": to_state, **updates})
