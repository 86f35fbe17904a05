"""Oracle capabilities the screening core depends on.

Implementations may be remote models or test fakes; the core only relies on
these signatures and on the typed errors in ``talent_screen.errors``.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, TypeVar

from talent_screen.errors import OracleUnavailable
from talent_screen.models import AnalysisResult, CandidateFacts, Job

T = TypeVar("T")


@dataclass(frozen=True)
class ScoringRequest:
    job_title: str
    job_description: str
    private_directions: str
    resume_text: str
    questionnaire_text: str

    @property
    def has_private_directions(self) -> bool:
        return bool(self.private_directions.strip())

    @property
    def has_questionnaire(self) -> bool:
        return bool(self.questionnaire_text.strip())


class ScoringOracle(ABC):
    @abstractmethod
    async def score(self, request: ScoringRequest) -> dict:
        """
        Return a JSON-like payload with resumeScore, questioneryScore, complianceScore,
        optional finalScore, strongPoints and weakPoints. May carry an ``_audit`` dict
        (model_id, prompt_version, prompt_hash).
        """


class ExtractionOracle(ABC):
    @abstractmethod
    async def extract(self, raw_text: str) -> CandidateFacts:
        """Structure résumé text. Raises OracleUnavailable / OracleResponseInvalid."""


class ComparisonOracle(ABC):
    @abstractmethod
    async def compare(self, job: Job, first: AnalysisResult, second: AnalysisResult) -> dict:
        """Return {"preferred": "first" | "second", "reason": str}."""


async def with_timeout(awaitable: Awaitable[T], timeout: float | None, what: str) -> T:
    """Bound an oracle call; a timeout becomes OracleUnavailable. Cancellation propagates unchanged."""
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as e:
        raise OracleUnavailable(f"{what} oracle timed out after {timeout}s") from e
