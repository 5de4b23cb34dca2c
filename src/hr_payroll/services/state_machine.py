"""Run and distribution state machines with transition validation."""

from __future__ import annotations

from enum import Enum

from hr_payroll.models.payroll import DistributionStatus, RunStatus


class RunState(str, Enum):
    """Per-period run state. NO_RUN is the absence of a row, never persisted."""

    NO_RUN = "NO_RUN"
    PROCESSED = RunStatus.PROCESSED.value


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class RunStateMachine:
    """State machine for a tenant's payroll period.

    Allowed transitions:
    - NO_RUN → PROCESSED (commit)

    PROCESSED is terminal; corrections happen outside this service.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        RunState.NO_RUN: [RunState.PROCESSED],
        RunState.PROCESSED: [],
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return not cls.VALID_TRANSITIONS.get(status, [])

    @classmethod
    def state_of(cls, run: object | None) -> RunState:
        """Map an optional persisted run to its state."""
        return RunState.NO_RUN if run is None else RunState.PROCESSED


class DistributionStateMachine:
    """State machine for payslip distribution.

    Allowed transitions:
    - NOT_SENT → SENT | FAILED
    - FAILED → SENT | FAILED (retry)
    - SENT → SENT (re-send)

    A sent payslip is never unsent: a failed re-send leaves it SENT.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        DistributionStatus.NOT_SENT: [DistributionStatus.SENT, DistributionStatus.FAILED],
        DistributionStatus.FAILED: [DistributionStatus.SENT, DistributionStatus.FAILED],
        DistributionStatus.SENT: [DistributionStatus.SENT],
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def next_status(cls, current: str, accepted: bool) -> DistributionStatus:
        """Status after one send attempt."""
        if current not in cls.VALID_TRANSITIONS:
            raise InvalidTransitionError(current, "SENT" if accepted else "FAILED", "unknown status")
        if accepted:
            return DistributionStatus.SENT
        if current == DistributionStatus.SENT:
            return DistributionStatus.SENT
        return DistributionStatus.FAILED
