"""Comparative Ranking Engine: ordering, tie-breaks, versioning, exclusion, pairwise comparison and mutual exclusion."""

import asyncio
from dataclasses import replace

import pytest

from fakes import (
    FakeComparisonOracle,
    FakeScoringOracle,
    build_service,
    fast_settings,
    make_application,
    make_job,
    make_result,
    seeded_store,
)
from talent_screen.errors import ConcurrentRankingInProgress, JobNotFound, OracleUnavailable, StoreError
from talent_screen.models import RankingRun, RankedCandidate
from talent_screen.store import InMemoryStore
from talent_screen.utils import utc_now


JOB = make_job(private_directions="US citizens only.")


def _rank(service, job_id="job-1", **kw):
    return asyncio.run(service.rank_candidates_for_job(job_id, **kw))


def test_tied_pair_ordered_by_compliance():
    """Final scores [40, 90, 90] → both 90s above the 40; the tie is broken by complianceScore."""
    results = [
        make_result("c-low", JOB, 40, compliance=95),
        make_result("c-a", JOB, 90, compliance=70),
        make_result("c-b", JOB, 90, compliance=80),
    ]
    service = build_service(seeded_store(JOB, results))

    run = _rank(service)
    assert run.candidate_ids == ["c-b", "c-a", "c-low"]
    assert "lower complianceScore" in run.entries[1].rationale


def test_full_tie_ordered_by_analyzed_at_then_id():
    """Equal final and compliance → earlier analysis first, then candidate id."""
    results = [
        make_result("c-late", JOB, 90, compliance=80, minutes=10),
        make_result("c-z", JOB, 90, compliance=80, minutes=0),
        make_result("c-y", JOB, 90, compliance=80, minutes=0),
    ]
    service = build_service(seeded_store(JOB, results))

    run = _rank(service)
    assert run.candidate_ids == ["c-y", "c-z", "c-late"]
    assert "candidateId" in run.entries[1].rationale
    assert "analyzed later" in run.entries[2].rationale


def test_ranks_are_dense():
    """Ranks are exactly 1..N in order."""
    results = [make_result(f"c-{i}", JOB, score) for i, score in enumerate([55, 90, 72, 90, 10])]
    service = build_service(seeded_store(JOB, results))

    run = _rank(service)
    assert [e.rank for e in run.entries] == [1, 2, 3, 4, 5]
    assert all(e.rationale for e in run.entries)


def test_rerank_increments_version_with_identical_order():
    """Ranking twice on unchanged data → versions 1 then 2, same order."""
    results = [make_result(f"c-{i}", JOB, score) for i, score in enumerate([40, 90, 90, 65])]
    store = seeded_store(JOB, results)
    service = build_service(store)

    async def scenario():
        first = await service.rank_candidates_for_job("job-1")
        second = await service.rank_candidates_for_job("job-1")
        return first, second

    first, second = asyncio.run(scenario())
    assert (first.ranking_version, second.ranking_version) == (1, 2)
    assert first.candidate_ids == second.candidate_ids
    assert [r.ranking_version for r in store.rankings["job-1"]] == [1, 2]


def test_no_eligible_candidates_returns_empty_run():
    """Zero analyzed candidates is not an error."""
    store = seeded_store(JOB, [])
    store.add_application(make_application("c-new"))
    service = build_service(store)

    run = _rank(service)
    assert run.entries == ()
    assert run.ranking_version == 1
    assert run.excluded == ("c-new",)


def test_unanalyzed_candidates_are_excluded_by_default():
    """Only candidates with a current analysis are ranked; no analysis is triggered."""
    store = seeded_store(JOB, [make_result("c-1", JOB, 70)])
    store.add_application(make_application("c-2"))
    oracle = FakeScoringOracle()
    service = build_service(store, oracle)

    run = _rank(service)
    assert run.candidate_ids == ["c-1"]
    assert run.excluded == ("c-2",)
    assert oracle.calls == []


def test_analyze_missing_runs_analysis_first():
    """analyze_missing=True analyzes unanalyzed candidates and ranks them."""
    store = seeded_store(JOB, [make_result("c-1", JOB, 70)])
    store.add_application(make_application("c-2"))
    store.add_application(make_application("c-3", cover_letter=""))
    oracle = FakeScoringOracle()
    service = build_service(store, oracle)

    run = _rank(service, analyze_missing=True)
    assert set(run.candidate_ids) == {"c-1", "c-2"}
    # c-3 has no questionnaire and stays out
    assert run.excluded == ("c-3",)
    assert len(oracle.calls) == 1


def test_stale_analyses_are_excluded():
    """Analyses made under previous private directions do not count."""
    store = seeded_store(JOB, [make_result("c-1", JOB, 70), make_result("c-2", JOB, 80)])
    store.add_job(replace(JOB, private_directions="Must relocate to Berlin."))
    service = build_service(store)

    run = _rank(service)
    assert run.entries == ()
    assert set(run.excluded) == {"c-1", "c-2"}


def test_unknown_job():
    """Ranking a job that does not exist fails with JobNotFound."""
    service = build_service(seeded_store(JOB, []))

    with pytest.raises(JobNotFound):
        _rank(service, job_id="missing")


def test_comparison_oracle_reorders_near_ties():
    """Within the near-tie margin the comparison oracle decides; outside it, scores do."""
    results = [
        make_result("c-top", JOB, 95, compliance=95),
        make_result("c-a", JOB, 90, compliance=90),
        make_result("c-b", JOB, 89, compliance=60),
    ]
    oracle = FakeComparisonOracle(favourites=["c-b"])
    service = build_service(seeded_store(JOB, results), comparison_oracle=oracle)

    run = _rank(service)
    assert run.candidate_ids == ["c-top", "c-b", "c-a"]
    assert run.comparison_method == "oracle"
    assert "below c-top on finalScore" in run.entries[1].rationale
    assert "comparison preferred c-b" in run.entries[2].rationale


def test_comparison_verdicts_are_memoized():
    """Re-ranking unchanged analyses reuses verdicts, so the order and oracle call count are stable."""
    results = [make_result("c-a", JOB, 90), make_result("c-b", JOB, 89)]
    oracle = FakeComparisonOracle(favourites=["c-b"])
    service = build_service(seeded_store(JOB, results), comparison_oracle=oracle)

    async def scenario():
        first = await service.rank_candidates_for_job("job-1")
        calls_after_first = len(oracle.calls)
        second = await service.rank_candidates_for_job("job-1")
        return first, second, calls_after_first

    first, second, calls_after_first = asyncio.run(scenario())
    assert first.candidate_ids == second.candidate_ids == ["c-b", "c-a"]
    assert len(oracle.calls) == calls_after_first


def test_deterministic_mode_ignores_comparison_oracle():
    """ranking_comparison='deterministic' never consults the oracle."""
    results = [make_result("c-a", JOB, 90), make_result("c-b", JOB, 89)]
    oracle = FakeComparisonOracle(favourites=["c-b"])
    settings = fast_settings(ranking_comparison="deterministic")
    service = build_service(seeded_store(JOB, results), comparison_oracle=oracle, settings=settings)

    run = _rank(service)
    assert run.candidate_ids == ["c-a", "c-b"]
    assert run.comparison_method == "deterministic"
    assert oracle.calls == []


def test_comparison_failure_falls_back_to_deterministic_order():
    """An unavailable comparison oracle degrades the run instead of failing it."""
    results = [
        make_result("c-a", JOB, 90, compliance=90),
        make_result("c-b", JOB, 89, compliance=60),
    ]
    oracle = FakeComparisonOracle(favourites=["c-b"], error=OracleUnavailable("down"))
    service = build_service(seeded_store(JOB, results), comparison_oracle=oracle)

    run = _rank(service)
    assert run.candidate_ids == ["c-a", "c-b"]
    assert run.comparison_method == "oracle-degraded"
    assert "deterministic" in run.algorithm_description


def test_comparison_verdicts_survive_a_new_service():
    """A verdict stored by one service is reused by another sharing the store, so the order holds."""
    store = seeded_store(JOB, [make_result("c-a", JOB, 90), make_result("c-b", JOB, 89)])
    prefers_first = FakeComparisonOracle(answer="first")
    prefers_second = FakeComparisonOracle(answer="second")

    v1 = _rank(build_service(store, comparison_oracle=prefers_first))
    v2 = _rank(build_service(store, comparison_oracle=prefers_second))

    assert v1.candidate_ids == v2.candidate_ids == ["c-a", "c-b"]
    assert (v1.ranking_version, v2.ranking_version) == (1, 2)
    assert v2.comparison_method == "oracle"
    assert prefers_second.calls == []
    assert len(store.comparisons) == 1


def test_comparison_failure_keeps_verdicts_already_obtained():
    """When the oracle fails part-way, earlier verdicts stand and later near-ties use the tie-break order."""
    results = [
        make_result("c-a", JOB, 90),
        make_result("c-b", JOB, 89),
        make_result("c-c", JOB, 50),
        make_result("c-d", JOB, 49),
    ]
    oracle = FakeComparisonOracle(answer="second", error=OracleUnavailable("down", retryable=False), error_after=1)
    service = build_service(seeded_store(JOB, results), comparison_oracle=oracle)

    run = _rank(service)
    assert run.candidate_ids[:2] == ["c-b", "c-a"]
    assert run.candidate_ids == ["c-b", "c-a", "c-c", "c-d"]
    assert run.comparison_method == "oracle-degraded"
    assert "comparison preferred c-b" in run.entries[1].rationale
    assert "below c-c on finalScore" in run.entries[3].rationale


def test_concurrent_ranking_is_rejected():
    """A second pass for the same job while one is running → ConcurrentRankingInProgress."""
    results = [make_result("c-a", JOB, 90), make_result("c-b", JOB, 89)]
    oracle = FakeComparisonOracle(delay=0.1)
    store = seeded_store(JOB, results)
    service = build_service(store, comparison_oracle=oracle)

    async def scenario():
        first = asyncio.create_task(service.rank_candidates_for_job("job-1"))
        await asyncio.sleep(0.02)
        with pytest.raises(ConcurrentRankingInProgress):
            await service.rank_candidates_for_job("job-1")
        return await first

    run = asyncio.run(scenario())
    assert run.ranking_version == 1
    assert len(store.rankings["job-1"]) == 1


def test_ranking_run_rejects_non_dense_ranks():
    """A RankingRun cannot be built with gaps in its ranks."""
    entries = (
        RankedCandidate("c-1", 1, 90, 90, "top"),
        RankedCandidate("c-2", 3, 80, 80, "gap"),
    )
    with pytest.raises(ValueError):
        RankingRun("job-1", 1, "test", utc_now(), entries)


class _ReadOnlyAnalysesStore(InMemoryStore):
    async def replace_analysis(self, result):
        raise StoreError("disk full")


def test_analyze_missing_excludes_unstored_results():
    """A result that could not be stored is not ranked; the candidate is listed as excluded."""
    store = _ReadOnlyAnalysesStore(jobs=[JOB])
    store.add_application(make_application("c-1"))
    store.analyses["c-1"] = make_result("c-1", JOB, 70)
    store.add_application(make_application("c-2"))
    oracle = FakeScoringOracle()
    service = build_service(store, oracle)

    run = _rank(service, analyze_missing=True)
    assert run.candidate_ids == ["c-1"]
    assert run.excluded == ("c-2",)
    assert len(oracle.calls) == 1
