"""
Error kinds raised by the allocation engine.

Services raise these typed errors; the store layer raises the ones that
describe row-level conflicts. Presentation layers map them to user feedback.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Violation:
    """One violated validation rule."""

    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


class AllocationError(Exception):
    """Base class of all allocation engine errors."""


class ValidationError(AllocationError):
    """Input rejected; carries every violated rule, not just the first."""

    def __init__(self, violations: list[Violation], message: Optional[str] = None):
        self.violations = list(violations)
        if message is None:
            message = "; ".join(f"{v.field}: {v.message}" for v in self.violations)
        super().__init__(message)

    @property
    def fields(self) -> list[str]:
        """Names of the offending fields, in reporting order."""
        return [v.field for v in self.violations]


class ConfigValidationError(ValidationError):
    """A proposed weighting configuration is malformed or out of range."""


class DecisionValidationError(ValidationError):
    """An allocation decision is malformed."""


class MissingJustificationError(AllocationError):
    """An override was recorded without the required reason."""

    def __init__(self, message: str = "Override requires a reason"):
        super().__init__(message)


class ConfigNotFoundError(AllocationError):
    """No active configuration of the requested kind."""

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"No active {kind} configuration")


class AlreadyAssignedError(AllocationError):
    """The analyst is already attached to the job."""

    def __init__(self, job_id: int, analyst_id: int):
        self.job_id = job_id
        self.analyst_id = analyst_id
        super().__init__(f"Analyst {analyst_id} is already assigned to job {job_id}")


class AssignmentNotFoundError(AllocationError):
    """No attached assignment matches the request."""

    def __init__(self, message: str):
        super().__init__(message)


class CapacityExhaustedError(AllocationError):
    """No eligible analyst can absorb the candidates being moved."""

    def __init__(self, job_id: int, candidate_ids: list[int]):
        self.job_id = job_id
        self.candidate_ids = list(candidate_ids)
        super().__init__(
            f"No eligible analyst left on job {job_id} for "
            f"{len(self.candidate_ids)} candidate(s)"
        )


class ConcurrentUpdateError(AllocationError):
    """A guarded update or a transaction kept losing to concurrent writers."""


class ProviderUnavailable(AllocationError):
    """An external provider timed out or failed."""


class FlowStateError(AllocationError):
    """An allocation flow step was invoked from the wrong state."""

    def __init__(self, action: str, state: str):
        self.action = action
        self.state = state
        super().__init__(f"Cannot {action} while flow is in state '{state}'")


@dataclass(frozen=True)
class CapacityExhaustedCondition:
    """
    Reported (not raised) when a candidate cannot be routed.

    The candidate is queued rather than dropped; the condition tells the
    caller so it can escalate.
    """

    job_id: int
    candidate_id: int
    attached_analysts: int = 0
    paused_analysts: int = 0
    full_analysts: int = 0

    @property
    def message(self) -> str:
        if self.attached_analysts == 0:
            return f"Job {self.job_id} has no analysts attached"
        return (
            f"All {self.attached_analysts} analyst(s) on job {self.job_id} are "
            f"paused ({self.paused_analysts}) or at capacity ({self.full_analysts})"
        )
