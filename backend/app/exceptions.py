"""Custom exception hierarchy for Gridfill."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Grid errors
    CELL_NOT_FOUND = "CELL_NOT_FOUND"
    COLUMN_NOT_FOUND = "COLUMN_NOT_FOUND"

    # Job errors
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    BULK_JOB_NOT_FOUND = "BULK_JOB_NOT_FOUND"

    # Generation rule resolution
    SCRIPT_NOT_FOUND = "SCRIPT_NOT_FOUND"
    RULE_RESOLUTION_FAILED = "RULE_RESOLUTION_FAILED"

    # Generation backend
    GENERATION_FAILED = "GENERATION_FAILED"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Database errors
    DATABASE_ERROR = "DATABASE_ERROR"
    OUTCOME_NOT_RECORDED = "OUTCOME_NOT_RECORDED"

    # Rate limiting
    RATE_LIMITED = "RATE_LIMITED"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class GridfillException(Exception):
    """
    Base exception for all Gridfill errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for JSON response.

        Returns:
            Dictionary with error, message, and details fields
        """
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class CellNotFoundError(GridfillException):
    """Cell not found in database."""

    def __init__(self, cell_id: int):
        super().__init__(
            f"Cell {cell_id} not found",
            ErrorCode.CELL_NOT_FOUND,
            status_code=404,
            details={"cell_id": cell_id}
        )


class ColumnNotFoundError(GridfillException):
    """Column not found in database."""

    def __init__(self, column_id: int):
        super().__init__(
            f"Column {column_id} not found",
            ErrorCode.COLUMN_NOT_FOUND,
            status_code=404,
            details={"column_id": column_id}
        )


class JobNotFoundError(GridfillException):
    """Single-cell job not found in database."""

    def __init__(self, job_id: int):
        super().__init__(
            f"Job {job_id} not found",
            ErrorCode.JOB_NOT_FOUND,
            status_code=404,
            details={"job_id": job_id}
        )


class BulkJobNotFoundError(GridfillException):
    """Bulk job not found in database."""

    def __init__(self, bulk_job_id: int):
        super().__init__(
            f"Bulk job {bulk_job_id} not found",
            ErrorCode.BULK_JOB_NOT_FOUND,
            status_code=404,
            details={"bulk_job_id": bulk_job_id}
        )


class ValidationError(GridfillException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class RuleResolutionError(GridfillException):
    """The generation rule for a column or job could not be resolved.

    Recorded on the job (single jobs) or the aggregate (bulk jobs) rather
    than returned to the caller.
    """

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.RULE_RESOLUTION_FAILED):
        super().__init__(message, error_code, status_code=422)


class ScriptNotFoundError(RuleResolutionError):
    """No column script is registered under the requested id."""

    def __init__(self, script_id: str):
        super().__init__(f"Script {script_id} not found", ErrorCode.SCRIPT_NOT_FOUND)
        self.details = {"script_id": script_id}


class GenerationError(GridfillException):
    """The generation backend could not produce a value."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.GENERATION_FAILED, status_code=502)


class DatabaseError(GridfillException):
    """Database operation failed."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(
            message,
            ErrorCode.DATABASE_ERROR,
            status_code=500,
            details=details
        )


class OutcomeRecordingError(GridfillException):
    """A per-cell outcome could not be persisted after retries.

    Distinct from a generation failure: the cell may well have produced a
    value, but the sub-job stays pending and the counters did not move.
    """

    def __init__(self, bulk_job_id: int, sub_job_id: int, original_error: Exception):
        super().__init__(
            f"Could not record outcome of sub-job {sub_job_id} in bulk job {bulk_job_id}",
            ErrorCode.OUTCOME_NOT_RECORDED,
            status_code=500,
            details={
                "bulk_job_id": bulk_job_id,
                "sub_job_id": sub_job_id,
                "original_error": str(original_error),
            },
        )
