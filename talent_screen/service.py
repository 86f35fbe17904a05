"""Exposed operations: analyze, read results, rank, ranking info, résumé parsing."""

import asyncio
import logging

from talent_screen.audit import AuditTrail
from talent_screen.config import Settings
from talent_screen.errors import ApplicationNotFound, ScreeningError
from talent_screen.models import AnalysisKey, AnalysisResult, ExtractionOutcome, RankingRun
from talent_screen.oracle.base import ComparisonOracle, ExtractionOracle, ScoringOracle
from talent_screen.oracle.client import GroqJSONClient
from talent_screen.oracle.comparison import GroqComparisonOracle
from talent_screen.oracle.extraction import GroqExtractionOracle
from talent_screen.oracle.scoring import GroqScoringOracle
from talent_screen.pipeline.extract import DocumentExtractor, ResumeSource
from talent_screen.pipeline.fetch import DocumentFetcher
from talent_screen.scoring.analysis import AnalysisEngine
from talent_screen.scoring.ranking import RankingEngine
from talent_screen.store import JsonFileStore, Store

log = logging.getLogger(__name__)


class ScreeningService:
    """
    Facade over the extractor, analysis engine and ranking engine.

    Every operation is a coroutine; cancelling it cancels in-flight oracle calls
    and leaves no partial writes. Failures surface as ScreeningError subclasses
    and are recorded in the audit trail when one is configured.
    """

    def __init__(
        self,
        store: Store,
        scoring_oracle: ScoringOracle | None,
        *,
        extraction_oracle: ExtractionOracle | None = None,
        comparison_oracle: ComparisonOracle | None = None,
        fetcher: DocumentFetcher | None = None,
        settings: Settings | None = None,
        audit: AuditTrail | None = None,
    ):
        self.settings = settings or Settings()
        self.store = store
        self.audit = audit
        self.extractor = DocumentExtractor(
            oracle=extraction_oracle,
            fetcher=fetcher
            or DocumentFetcher(timeout=self.settings.fetch_timeout, max_bytes=self.settings.max_document_bytes),
            oracle_timeout=self.settings.oracle_timeout,
            max_document_bytes=self.settings.max_document_bytes,
        )
        self.analysis = AnalysisEngine(store, scoring_oracle, self.extractor, self.settings, audit)
        self.ranking = RankingEngine(store, self.analysis, comparison_oracle, self.settings)

    def _record(self, action: str, status: str, **fields):
        if self.audit is not None:
            self.audit.record(action, status, **fields)

    async def _audited(self, action: str, coro, **fields):
        try:
            result = await coro
        except asyncio.CancelledError:
            self._record(action, "cancelled", **fields)
            raise
        except ScreeningError as e:
            log.warning("%s failed: %s", action, e)
            self._record(action, "error", error=str(e), error_type=type(e).__name__, retryable=e.retryable, **fields)
            raise
        self._record(action, "success", **fields)
        return result

    async def analyze_application(self, candidate_id: str, force: bool = False, strict: bool = True) -> AnalysisResult:
        """Analyze one application, reusing the current cached result unless ``force``."""
        return await self._audited(
            "analyze_application",
            self.analysis.analyze(candidate_id, force=force, strict=strict),
            candidate_id=candidate_id,
            force=force,
            strict=strict,
        )

    async def get_analysis_results(self, candidate_id: str) -> AnalysisResult | None:
        """
        Current stored result, or None when the candidate is unknown, was never
        analyzed, or was analyzed under other private directions.
        """
        try:
            return await self.analysis.get_cached(candidate_id)
        except ApplicationNotFound:
            log.info("No application for %s; no analysis results", candidate_id)
            return None

    async def rank_candidates_for_job(self, job_id: str, analyze_missing: bool = False) -> RankingRun:
        return await self._audited(
            "rank_candidates_for_job",
            self.ranking.rank(job_id, analyze_missing=analyze_missing),
            job_id=job_id,
            analyze_missing=analyze_missing,
        )

    async def ranking_info(self, job_id: str) -> dict:
        """Ranking metadata for a job, counting candidates analyzed under its current private directions."""
        job = await self.store.get_job(job_id)
        latest = await self.store.latest_ranking(job_id)
        analyzed = 0
        for candidate_id in await self.store.list_candidates(job_id):
            if await self.analysis.cached_for(AnalysisKey.for_job(candidate_id, job)) is not None:
                analyzed += 1
        return {
            "job_id": job_id,
            "algorithm": latest.algorithm_description if latest else self.ranking.algorithm_description(),
            "ranking_method": latest.comparison_method if latest else None,
            "ranking_version": latest.ranking_version if latest else 0,
            "last_ranked_at": latest.last_ranked_at if latest else None,
            "total_analyzed_candidates": analyzed,
            "ranked_candidates": len(latest.entries) if latest else 0,
            "has_private_directions": job.has_private_directions,
            "ranking_in_progress": self.ranking.is_running(job_id),
        }

    async def parse_resume(self, source: ResumeSource, use_oracle: bool = True) -> ExtractionOutcome:
        """Extract facts from a document without storing them."""
        return await self._audited(
            "parse_resume",
            self.extractor.extract(source, use_oracle=use_oracle),
            source=source if isinstance(source, str) else type(source).__name__,
            use_oracle=use_oracle,
        )


def build_service(settings: Settings | None = None) -> ScreeningService:
    """Production wiring: Groq oracles (when GROQ_API_KEY is set) over a JSON-file store."""
    settings = settings or Settings.from_env()
    scoring = extraction = comparison = None
    if settings.groq_api_key:

        def client(model: str) -> GroqJSONClient:
            return GroqJSONClient(
                settings.groq_api_key,
                model,
                fallback_models=settings.fallback_models,
                timeout=settings.oracle_timeout,
            )

        scoring = GroqScoringOracle(client(settings.scoring_model))
        extraction = GroqExtractionOracle(client(settings.extract_model))
        if settings.ranking_comparison == "oracle":
            comparison = GroqComparisonOracle(client(settings.compare_model))
    else:
        log.warning("GROQ_API_KEY not set: analysis is unavailable and extraction uses raw segmentation")

    return ScreeningService(
        JsonFileStore(settings.data_dir),
        scoring,
        extraction_oracle=extraction,
        comparison_oracle=comparison,
        settings=settings,
        audit=AuditTrail(settings.log_dir),
    )
