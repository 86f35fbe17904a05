"""Typed failures raised by the screening core.

Every error carries ``retryable`` so callers can decide whether to try again
without inspecting messages.
"""


class ScreeningError(Exception):
    """Base class for all screening failures."""

    retryable = False


class NotFound(ScreeningError):
    """A job or application the caller referenced does not exist."""


class JobNotFound(NotFound):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class ApplicationNotFound(NotFound):
    def __init__(self, candidate_id: str):
        self.candidate_id = candidate_id
        super().__init__(f"Application not found: {candidate_id}")


class IncompleteApplication(ScreeningError):
    """Raised when a fresh analysis lacks a résumé or questionnaire. No automatic recovery."""

    def __init__(self, candidate_id: str, missing: tuple[str, ...] | list[str]):
        self.candidate_id = candidate_id
        self.missing = tuple(missing)
        super().__init__(
            f"Application {candidate_id} is incomplete: missing {', '.join(self.missing)}. "
            "Both a resume and questionnaire answers are required for analysis."
        )

    @property
    def artifact(self) -> str:
        return self.missing[0]


class ExtractionError(ScreeningError):
    """Base for document extraction failures; names the offending artifact."""

    def __init__(self, artifact: str, reason: str):
        self.artifact = artifact
        self.reason = reason
        super().__init__(f"{artifact}: {reason}")


class UnsupportedFormat(ExtractionError):
    pass


class FetchFailed(ExtractionError):
    retryable = True


class EmptyDocument(ExtractionError):
    pass


class OracleError(ScreeningError):
    """Base for failures of an external oracle (scoring, extraction, comparison)."""


class OracleUnavailable(OracleError):
    """Timeout, transport or service error. Retryable unless the cause is permanent (e.g. auth)."""

    def __init__(self, message: str, *, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


class OracleResponseInvalid(OracleError):
    """The oracle answered, but not with the required shape. Never retried."""

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class ConcurrentRankingInProgress(ScreeningError):
    retryable = True

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"A ranking pass for job {job_id} is already running")


class StoreError(ScreeningError):
    """Persistence collaborator failed to read or write."""


class RankingVersionConflict(StoreError):
    retryable = True

    def __init__(self, job_id: str, expected: int, actual: int):
        self.job_id = job_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Ranking version conflict for job {job_id}: expected previous version {expected}, found {actual}"
        )
