"""Error taxonomy for the mutation workflow.

Each error is an HTTPException so routers can let it propagate unchanged and
FastAPI renders the matching status code.
"""
from fastapi import HTTPException, status


class WorkflowError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(status_code=self.status_code, detail=detail)


class Unauthenticated(WorkflowError):
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(WorkflowError):
    """Role or department policy denies the action. Permanent."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFound(WorkflowError):
    status_code = status.HTTP_404_NOT_FOUND


class ValidationError(WorkflowError):
    """Malformed request: empty snapshots, unknown table, missing or bad fields."""

    status_code = 422


class InvalidStateError(WorkflowError):
    """Decision attempted on a request that is no longer PENDING."""

    status_code = status.HTTP_409_CONFLICT


class StaleRecordError(WorkflowError):
    """An approved change could not be applied; the decision stands."""

    status_code = status.HTTP_409_CONFLICT
