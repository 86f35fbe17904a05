"""Analysis Engine: cached, single-flight scoring of one application against its job."""

import logging
from dataclasses import replace

from talent_screen.audit import AuditTrail
from talent_screen.concurrency import KeyedLock, SingleFlight
from talent_screen.config import Settings
from talent_screen.errors import IncompleteApplication, OracleUnavailable, StoreError
from talent_screen.models import AnalysisKey, AnalysisResult, Application, Job
from talent_screen.oracle.base import ScoringOracle, ScoringRequest, with_timeout
from talent_screen.oracle.retry import call_with_retry
from talent_screen.pipeline.extract import DocumentExtractor
from talent_screen.pipeline.formatting import (
    consolidate_questionnaire,
    format_job_for_analysis,
    format_resume_for_analysis,
    has_questionnaire,
)
from talent_screen.scoring.aggregate import aggregate_scores
from talent_screen.utils import utc_now

log = logging.getLogger(__name__)

RESUME = "resume"
QUESTIONNAIRE = "questionnaire"


class AnalysisEngine:
    """
    Produces AnalysisResults keyed by (candidate, job, directions version).

    A stored result is reused until the job's private directions change or the
    caller forces a recomputation. Concurrent requests for the same key share one
    oracle call; requests for different keys of the same candidate serialize.
    """

    def __init__(
        self,
        store,
        scoring_oracle: ScoringOracle | None,
        extractor: DocumentExtractor | None = None,
        settings: Settings | None = None,
        audit: AuditTrail | None = None,
    ):
        self._store = store
        self._oracle = scoring_oracle
        self._extractor = extractor or DocumentExtractor()
        self._settings = settings or Settings()
        self._audit = audit
        self._flights = SingleFlight()
        self._candidate_locks = KeyedLock()

    async def resolve(self, candidate_id: str) -> tuple[Application, Job, AnalysisKey]:
        application = await self._store.get_application(candidate_id)
        job = await self._store.get_job(application.job_id)
        return application, job, AnalysisKey.for_job(candidate_id, job)

    async def cached_for(self, key: AnalysisKey) -> AnalysisResult | None:
        """Stored result for exactly ``key``; a result for other directions counts as a miss."""
        result = await self._store.get_analysis(key.candidate_id)
        if result is None:
            return None
        if result.key != key:
            log.info(
                "Stored analysis for %s is stale (job %s, directions %s..., current %s...); treating as miss",
                key.candidate_id,
                result.key.job_id,
                result.key.directions_version[:12],
                key.directions_version[:12],
            )
            return None
        return result

    async def get_cached(self, candidate_id: str) -> AnalysisResult | None:
        _, _, key = await self.resolve(candidate_id)
        return await self.cached_for(key)

    async def analyze(self, candidate_id: str, force: bool = False, strict: bool = True) -> AnalysisResult:
        application, job, key = await self.resolve(candidate_id)
        if not force:
            cached = await self.cached_for(key)
            if cached is not None:
                log.debug("Analysis cache hit for %s", candidate_id)
                return cached
        return await self._flights.run(
            (key, strict), lambda: self._compute(application, job, key, force=force, strict=strict)
        )

    async def _compute(self, application: Application, job: Job, key: AnalysisKey, *, force: bool, strict: bool):
        async with self._candidate_locks.hold(key.candidate_id):
            if not force:
                # Another key's pass for this candidate may have finished while we waited
                cached = await self.cached_for(key)
                if cached is not None:
                    return cached

            stored_facts = await self._store.get_candidate_facts(key.candidate_id)
            missing = []
            if stored_facts is None and not application.has_resume:
                missing.append(RESUME)
            if strict and not has_questionnaire(application):
                missing.append(QUESTIONNAIRE)
            if missing:
                raise IncompleteApplication(key.candidate_id, missing)

            resume_text, extraction_method = await self._resume_text(application, stored_facts)
            request = ScoringRequest(
                job_title=job.title,
                job_description=format_job_for_analysis(job),
                private_directions=job.private_directions,
                resume_text=resume_text,
                questionnaire_text=consolidate_questionnaire(application),
            )
            log.info("Scoring %s for job %s (force=%s, strict=%s)", key.candidate_id, key.job_id, force, strict)
            payload = await self._score(request)
            scores = aggregate_scores(payload, has_private_directions=job.has_private_directions)
            audit_meta = payload.get("_audit") or {}

            result = AnalysisResult(
                key=key,
                resume_score=scores.resume_score,
                questionery_score=scores.questionery_score,
                compliance_score=scores.compliance_score,
                final_score=scores.final_score,
                strong_points=scores.strong_points,
                weak_points=scores.weak_points,
                resume_strong_points=scores.resume_strong_points,
                resume_weak_points=scores.resume_weak_points,
                questionery_strong_points=scores.questionery_strong_points,
                questionery_weak_points=scores.questionery_weak_points,
                analyzed_at=utc_now(),
                recruiter_remarks=scores.recruiter_remarks,
                meets_directions=scores.meets_directions,
                compliance_reasoning=scores.compliance_reasoning,
                score_source=scores.score_source,
                extraction_method=extraction_method,
                model_id=audit_meta.get("model_id", ""),
                prompt_version=audit_meta.get("prompt_version", ""),
            )
            result = await self._persist(result)
            if self._audit is not None:
                self._audit.record_analysis(result)
            return result

    async def _resume_text(self, application: Application, stored_facts) -> tuple[str, str]:
        if stored_facts is not None:
            return format_resume_for_analysis(stored_facts.facts), stored_facts.method
        if application.resume_text.strip():
            return application.resume_text.strip(), "provided"
        outcome = await self._extractor.extract(
            application.resume_source, use_oracle=self._settings.use_extraction_oracle
        )
        # Facts are derived data; keeping them spares the next pass a re-extraction
        try:
            await self._store.put_candidate_facts(application.candidate_id, outcome)
        except StoreError as e:
            log.warning("Could not store extracted facts for %s: %s", application.candidate_id, e)
        return format_resume_for_analysis(outcome.facts), outcome.method

    async def _score(self, request: ScoringRequest) -> dict:
        if self._oracle is None:
            raise OracleUnavailable("No scoring oracle configured (set GROQ_API_KEY)", retryable=False)
        settings = self._settings
        return await call_with_retry(
            lambda: with_timeout(self._oracle.score(request), settings.oracle_timeout, "scoring"),
            what="scoring",
            max_attempts=settings.oracle_max_attempts,
            backoff_min=settings.oracle_backoff_min,
            backoff_max=settings.oracle_backoff_max,
        )

    async def _persist(self, result: AnalysisResult) -> AnalysisResult:
        """Store the result; on store failure hand back an ephemeral (stored=False) result."""
        try:
            await self._store.replace_analysis(result)
        except StoreError as e:
            log.error("Could not store analysis for %s: %s", result.candidate_id, e)
            return replace(result, stored=False)

        reasons = result.match_reasons(self._settings.match_reason_limit)
        try:
            await self._store.put_match_reasons(result.candidate_id, reasons)
        except StoreError as e:
            log.warning("Analysis for %s stored but match reasons were not: %s", result.candidate_id, e)
        return result.as_stored()
