"""Error taxonomy for leave operations and its HTTP mapping.

Services raise these instead of HTTPException so the same rules can run
outside a request (the sweep scheduler, scripts, tests). The handlers
registered by `register_exception_handlers` render them with the same
`{"detail": ...}` body FastAPI uses for HTTPException.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class LeaveTrackerError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(LeaveTrackerError):
    """Input rejected before any write (bad dates, ineligible transition)."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class ConflictError(ValidationError):
    status_code = status.HTTP_409_CONFLICT


class NotFoundError(LeaveTrackerError):
    status_code = status.HTTP_404_NOT_FOUND


class AuthRequiredError(LeaveTrackerError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(detail)


class ForbiddenError(LeaveTrackerError):
    status_code = status.HTTP_403_FORBIDDEN


class StorageSideEffectError(LeaveTrackerError):
    """Document store failure. Non-fatal when it accompanies a status change."""

    status_code = status.HTTP_502_BAD_GATEWAY


async def _handle_leave_tracker_error(
    request: Request, exc: LeaveTrackerError
) -> JSONResponse:
    headers = None
    if isinstance(exc, AuthRequiredError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LeaveTrackerError, _handle_leave_tracker_error)
