"""Comparative Ranking Engine: orders a job's analyzed candidates into a versioned RankingRun."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Union

import jsonschema

from talent_screen.concurrency import ExclusiveClaims
from talent_screen.config import Settings
from talent_screen.errors import OracleError, OracleResponseInvalid, ScreeningError, StoreError
from talent_screen.models import AnalysisKey, AnalysisResult, Job, RankedCandidate, RankingRun
from talent_screen.oracle.base import ComparisonOracle, with_timeout
from talent_screen.oracle.retry import call_with_retry
from talent_screen.utils import hash_text, to_iso, utc_now
from talent_screen.validation import validate_comparison_verdict

log = logging.getLogger(__name__)

ALGORITHM_NAME = "Comparative Ranking v1"
TIE_BREAK_ORDER = "finalScore desc, complianceScore desc, analyzedAt asc, candidateId asc"


@dataclass(frozen=True)
class OracleVerdict:
    winner: str
    reason: str
    method = "oracle"


@dataclass(frozen=True)
class PolicyVerdict:
    """Deterministic outcome: the first criterion of the tie-break order on which the pair differs."""

    winner: str
    basis: str
    method = "policy"


Verdict = Union[OracleVerdict, PolicyVerdict]


def base_sort_key(result: AnalysisResult):
    return (-result.final_score, -result.compliance_score, result.analyzed_at, result.candidate_id)


def policy_verdict(a: AnalysisResult, b: AnalysisResult) -> PolicyVerdict:
    criteria = (
        ("finalScore", -a.final_score, -b.final_score),
        ("complianceScore", -a.compliance_score, -b.compliance_score),
        ("analyzedAt", a.analyzed_at, b.analyzed_at),
        ("candidateId", a.candidate_id, b.candidate_id),
    )
    for basis, ka, kb in criteria:
        if ka != kb:
            return PolicyVerdict(winner=a.candidate_id if ka < kb else b.candidate_id, basis=basis)
    return PolicyVerdict(winner=a.candidate_id, basis="candidateId")


def _identity(result: AnalysisResult) -> tuple[str, str]:
    return result.candidate_id, to_iso(result.analyzed_at)


def _pair(a: AnalysisResult, b: AnalysisResult) -> frozenset[str]:
    return frozenset((a.candidate_id, b.candidate_id))


def verdict_key(job: Job, first: AnalysisResult, second: AnalysisResult) -> str:
    """Stable identity of a comparison: the job, its directions version and both analyses."""
    parts = (job.job_id, job.directions_version, *_identity(first), *_identity(second))
    return hash_text("|".join(parts))


def describe_position(result: AnalysisResult, above: AnalysisResult | None, verdict: Verdict | None) -> str:
    scores = f"final {result.final_score:g}, compliance {result.compliance_score:g}"
    if above is None:
        return f"{scores}; top of the ranking"
    if verdict is not None and verdict.method == "oracle":
        return f"{scores}; near-tie with {above.candidate_id}, comparison preferred {verdict.winner}: {verdict.reason}"
    basis = policy_verdict(above, result).basis
    if basis == "finalScore":
        return f"{scores}; below {above.candidate_id} on finalScore ({above.final_score:g} > {result.final_score:g})"
    if basis == "complianceScore":
        return (
            f"{scores}; tied on finalScore with {above.candidate_id}, "
            f"lower complianceScore ({above.compliance_score:g} > {result.compliance_score:g})"
        )
    if basis == "analyzedAt":
        return f"{scores}; tied on scores with {above.candidate_id}, analyzed later"
    return f"{scores}; tied on scores and analysis time with {above.candidate_id}, ordered by candidateId"


class RankingEngine:
    """
    Ranks every candidate of a job that has a current analysis.

    The base order is the deterministic tie-break order. With a comparison oracle
    configured, adjacent candidates whose final scores lie within the near-tie
    margin are compared pairwise and swapped when the oracle prefers the lower one;
    verdicts are kept in the store per analysis identity, so unchanged inputs
    reproduce the same order in any process. After an oracle failure, verdicts
    already obtained stand and the remaining near-ties follow the tie-break order.
    """

    def __init__(
        self,
        store,
        analysis_engine,
        comparison_oracle: ComparisonOracle | None = None,
        settings: Settings | None = None,
    ):
        self._store = store
        self._analysis = analysis_engine
        self._oracle = comparison_oracle
        self._settings = settings or Settings()
        self._running = ExclusiveClaims()

    @property
    def uses_oracle(self) -> bool:
        return self._oracle is not None and self._settings.ranking_comparison == "oracle"

    def algorithm_description(self, method: str | None = None) -> str:
        method = method or ("oracle" if self.uses_oracle else "deterministic")
        base = f"{ALGORITHM_NAME}: ordered by {TIE_BREAK_ORDER}"
        if method == "oracle":
            return (
                f"{base}; candidates within {self._settings.ranking_near_tie_margin:g} final-score points "
                "re-ordered by pairwise comparison that privileges private directions"
            )
        if method == "oracle-degraded":
            return f"{base}; pairwise comparison failed part-way, remaining near-ties ordered deterministically"
        return base

    def is_running(self, job_id: str) -> bool:
        return self._running.held(job_id)

    async def rank(self, job_id: str, analyze_missing: bool = False) -> RankingRun:
        """Raises ConcurrentRankingInProgress when a pass for ``job_id`` is already running."""
        with self._running.claim(job_id):
            job = await self._store.get_job(job_id)
            candidate_ids = await self._store.list_candidates(job_id)
            eligible, excluded = await self._eligible(job, candidate_ids, analyze_missing)
            ordered, verdicts, method = await self._order(job, eligible)

            entries = []
            for i, result in enumerate(ordered):
                above = ordered[i - 1] if i else None
                verdict = verdicts.get(_pair(above, result)) if above is not None else None
                entries.append(
                    RankedCandidate(
                        candidate_id=result.candidate_id,
                        rank=i + 1,
                        final_score=result.final_score,
                        compliance_score=result.compliance_score,
                        rationale=describe_position(result, above, verdict),
                    )
                )

            previous = await self._store.latest_ranking(job_id)
            previous_version = previous.ranking_version if previous else 0
            run = RankingRun(
                job_id=job_id,
                ranking_version=previous_version + 1,
                algorithm_description=self.algorithm_description(method),
                last_ranked_at=utc_now(),
                entries=tuple(entries),
                directions_version=job.directions_version,
                comparison_method=method,
                excluded=tuple(excluded),
            )
            await self._store.append_ranking(run, expected_previous=previous_version)
            log.info(
                "Ranked job %s v%d: %d candidates, %d excluded (%s)",
                job_id,
                run.ranking_version,
                len(entries),
                len(excluded),
                method,
            )
            return run

    async def _eligible(self, job: Job, candidate_ids: list[str], analyze_missing: bool):
        eligible: list[AnalysisResult] = []
        missing: list[str] = []
        for candidate_id in candidate_ids:
            result = await self._analysis.cached_for(AnalysisKey.for_job(candidate_id, job))
            if result is None:
                missing.append(candidate_id)
            else:
                eligible.append(result)

        if not missing or not analyze_missing:
            return eligible, missing

        log.info("Analyzing %d unanalyzed candidates for job %s before ranking", len(missing), job.job_id)
        analyzed = await asyncio.gather(*(self._try_analyze(cid) for cid in missing))
        excluded = []
        for candidate_id, result in zip(missing, analyzed):
            if result is None:
                excluded.append(candidate_id)
            else:
                eligible.append(result)
        return eligible, excluded

    async def _try_analyze(self, candidate_id: str) -> AnalysisResult | None:
        try:
            result = await self._analysis.analyze(candidate_id)
        except ScreeningError as e:
            log.warning("Excluding %s from ranking: analysis failed: %s", candidate_id, e)
            return None
        if not result.stored:
            log.warning("Excluding %s from ranking: analysis could not be stored", candidate_id)
            return None
        return result

    async def _order(self, job: Job, eligible: list[AnalysisResult]):
        ordered = sorted(eligible, key=base_sort_key)
        if not self.uses_oracle or len(ordered) < 2:
            return ordered, {}, "deterministic"

        margin = self._settings.ranking_near_tie_margin
        verdicts: dict[frozenset, Verdict] = {}
        degraded = False
        # Bounded adjacent-swap passes; at most N passes even if verdicts are intransitive
        for _ in range(len(ordered)):
            swapped = False
            for i in range(len(ordered) - 1):
                first, second = ordered[i], ordered[i + 1]
                if abs(first.final_score - second.final_score) > margin:
                    continue
                pair = _pair(first, second)
                verdict = verdicts.get(pair)
                if verdict is None and not degraded:
                    try:
                        verdict = await self._compare(job, first, second)
                    except OracleError as e:
                        log.warning(
                            "Comparison oracle failed for job %s (%s); remaining near-ties use the tie-break order",
                            job.job_id,
                            e,
                        )
                        degraded = True
                if verdict is None:
                    verdict = policy_verdict(first, second)
                verdicts[pair] = verdict
                if verdict.winner == second.candidate_id:
                    ordered[i], ordered[i + 1] = second, first
                    swapped = True
            if not swapped:
                break
        return ordered, verdicts, "oracle-degraded" if degraded else "oracle"

    async def _compare(self, job: Job, a: AnalysisResult, b: AnalysisResult) -> OracleVerdict:
        first, second = sorted((a, b), key=_identity)
        key = verdict_key(job, first, second)
        try:
            stored = await self._store.get_comparison(job.job_id, key)
        except StoreError as e:
            log.warning("Could not read stored comparison for job %s: %s", job.job_id, e)
            stored = None
        if stored is not None:
            return OracleVerdict(winner=stored["winner"], reason=stored["reason"])

        settings = self._settings
        data = await call_with_retry(
            lambda: with_timeout(self._oracle.compare(job, first, second), settings.oracle_timeout, "comparison"),
            what="comparison",
            max_attempts=settings.oracle_max_attempts,
            backoff_min=settings.oracle_backoff_min,
            backoff_max=settings.oracle_backoff_max,
        )
        try:
            validate_comparison_verdict(data)
        except jsonschema.ValidationError as e:
            raise OracleResponseInvalid(f"Comparison verdict failed schema validation: {e.message}") from e

        winner = first if data["preferred"] == "first" else second
        verdict = OracleVerdict(winner=winner.candidate_id, reason=data["reason"].strip())
        try:
            await self._store.put_comparison(job.job_id, key, {"winner": verdict.winner, "reason": verdict.reason})
        except StoreError as e:
            log.warning("Could not store comparison for job %s: %s", job.job_id, e)
        return verdict
