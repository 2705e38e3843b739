"""Job status transitions and retry policy."""
from __future__ import annotations

from webhook_service.core.exceptions import InvalidStatusTransitionError
from webhook_service.domain.enums import JobStatus

JOB_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.PROCESSING},
    JobStatus.PROCESSING: {JobStatus.COMPLETED, JobStatus.PENDING, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}

TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


def validate_job_transition(current: JobStatus, new: JobStatus) -> None:
    if new not in JOB_TRANSITIONS.get(current, set()):
        raise InvalidStatusTransitionError(
            f"Invalid job status transition: {current.value} → {new.value}"
        )


def status_after_failure(attempts: int, max_attempts: int) -> JobStatus:
    """Where a job goes when the attempt numbered ``attempts`` fails."""
    return JobStatus.PENDING if attempts < max_attempts else JobStatus.FAILED


def backoff_seconds(attempt: int, cap: int = 60) -> int:
    # attempt is 1-based
    return min(cap, 2 ** min(attempt, 6))
