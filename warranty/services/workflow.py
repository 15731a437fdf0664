"""
Status / completion coupling for submissions

The status and the completion timestamp are always derived together:

1. status -> done: completion = given value, else the existing one, else now
2. status -> anything else: completion is cleared
3. completion set without a status: status is promoted to done
4. completion cleared without a status: done falls back to in progress,
   any other status is left alone
5. a non-done status with a completion timestamp, or done with an explicit
   empty completion, is rejected
"""

from datetime import datetime, timezone
from typing import Optional, Tuple

from warranty.models.submission import SubmissionStatus

_MISSING = object()


class WorkflowConflictError(ValueError):
    pass


def apply_workflow_patch(
    current_status: SubmissionStatus,
    current_completed_at: Optional[datetime],
    patch: dict,
    now: Optional[datetime] = None,
) -> Tuple[SubmissionStatus, Optional[datetime]]:
    """
    Compute the new (status, completed_at) pair.

    ``patch`` only contains the keys the caller actually sent; an explicit
    ``None`` for ``completed_at`` means "clear".
    """
    new_status = patch.get("status", _MISSING)
    new_completed = patch.get("completed_at", _MISSING)

    if new_status is _MISSING and new_completed is _MISSING:
        return current_status, current_completed_at

    if new_status is not _MISSING:
        if new_status == SubmissionStatus.DONE:
            if new_completed is None:
                raise WorkflowConflictError(
                    "Status 'Erledigt' erfordert ein Erledigungsdatum"
                )
            if new_completed is not _MISSING:
                return new_status, new_completed
            return new_status, current_completed_at or now or datetime.now(timezone.utc)

        if new_completed is not _MISSING and new_completed is not None:
            raise WorkflowConflictError(
                "Ein Erledigungsdatum ist nur mit Status 'Erledigt' möglich"
            )
        return new_status, None

    if new_completed is not None:
        return SubmissionStatus.DONE, new_completed

    if current_status == SubmissionStatus.DONE:
        return SubmissionStatus.IN_PROGRESS, None
    return current_status, None
