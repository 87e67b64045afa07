"""
Standardised error handling for AdScribe.
"""

from adscribe.core.constants import ErrorCode, RETRYABLE_ERRORS


class JobError(Exception):
    """Raised when a job encounters a known error condition."""

    def __init__(self, code: str, message: str, retryable: bool | None = None):
        self.code = code
        self.message = message
        # auto-detect retryable from code if not explicitly set
        self.retryable = retryable if retryable is not None else (code in RETRYABLE_ERRORS)
        super().__init__(f"[{code}] {message}")


class QuotaExceeded(JobError):
    """The daily admission limit has been reached."""

    def __init__(self, limit: int, reset_at: str = "00:00"):
        self.limit = limit
        self.reset_at = reset_at
        super().__init__(
            ErrorCode.QUOTA_EXCEEDED,
            f"Daily limit reached ({limit} requests). Try again after {reset_at}.",
            retryable=False,
        )


class WorkspaceCreateError(JobError):
    """The storage backing could not allocate a job workspace."""

    def __init__(self, job_id: str, message: str):
        self.job_id = job_id
        super().__init__(ErrorCode.WORKSPACE_CREATE, message, retryable=False)


class ArtifactNotFound(JobError):
    """An artifact was never produced, or its workspace has been reaped."""

    def __init__(self, job_id: str, kind: str | None = None):
        self.job_id = job_id
        self.kind = kind
        what = kind or "workspace"
        super().__init__(ErrorCode.ARTIFACT_NOT_FOUND,
                         f"{what} not found for job {job_id}", retryable=False)


class StageFailure(JobError):
    """A pipeline stage failed after its applicable retries."""

    def __init__(self, stage: str, code: str, message: str,
                 retryable: bool | None = None):
        self.stage = stage
        super().__init__(code, message, retryable)

    @classmethod
    def wrap(cls, stage: str, error: JobError) -> "StageFailure":
        return cls(stage, error.code, error.message, error.retryable)