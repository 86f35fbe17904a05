"""Exposed operations: audit trail, ranking metadata and résumé parsing."""

import asyncio
import csv
import json

import pytest

from fakes import SAMPLE_RESUME, FakeScoringOracle, build_service, make_application, make_job, make_result, seeded_store
from talent_screen.audit import AuditTrail
from talent_screen.errors import IncompleteApplication
from talent_screen.store import InMemoryStore


def _audit_entries(log_dir):
    lines = (log_dir / "audit.log").read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


def test_successful_analysis_is_audited(tmp_path):
    """Success → an audit entry plus one performance row in JSONL and CSV."""
    audit = AuditTrail(tmp_path)
    store = InMemoryStore(jobs=[make_job(private_directions="Onsite in Denver.")], applications=[make_application()])
    service = build_service(store, FakeScoringOracle(), audit=audit)

    asyncio.run(service.analyze_application("cand-1"))

    entries = _audit_entries(tmp_path)
    assert entries[-1]["action"] == "analyze_application"
    assert entries[-1]["status"] == "success"
    assert entries[-1]["candidate_id"] == "cand-1"

    with open(tmp_path / "model_performance.csv", encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 1
    assert rows[0]["score_source"] == "compliance"
    assert rows[0]["stored"] == "True"
    perf = json.loads((tmp_path / "model_performance.jsonl").read_text(encoding="utf-8").splitlines()[0])
    assert len(perf["strong_points"]) == 4


def test_failed_analysis_is_audited_with_error_type(tmp_path):
    """Typed failures are recorded with their class name and retryability."""
    audit = AuditTrail(tmp_path)
    store = InMemoryStore(jobs=[make_job()], applications=[make_application(cover_letter="")])
    service = build_service(store, FakeScoringOracle(), audit=audit)

    with pytest.raises(IncompleteApplication):
        asyncio.run(service.analyze_application("cand-1"))

    entry = _audit_entries(tmp_path)[-1]
    assert entry["status"] == "error"
    assert entry["error_type"] == "IncompleteApplication"
    assert entry["retryable"] is False
    assert "questionnaire" in entry["error"]
    assert not (tmp_path / "model_performance.csv").exists()


def test_ranking_info_before_and_after_ranking():
    """Metadata reports version 0 until the first run, then the latest run."""
    job = make_job(private_directions="Spanish speakers only.")
    store = seeded_store(job, [make_result("c-1", job, 80), make_result("c-2", job, 60)])
    store.add_application(make_application("c-3"))
    service = build_service(store)

    async def scenario():
        before = await service.ranking_info("job-1")
        await service.rank_candidates_for_job("job-1")
        after = await service.ranking_info("job-1")
        return before, after

    before, after = asyncio.run(scenario())
    assert before["ranking_version"] == 0
    assert before["last_ranked_at"] is None
    assert before["total_analyzed_candidates"] == 2
    assert before["has_private_directions"] is True
    assert after["ranking_version"] == 1
    assert after["ranked_candidates"] == 2
    assert after["ranking_method"] == "deterministic"
    assert after["ranking_in_progress"] is False


def test_get_analysis_results_only_returns_current():
    """A result stored for other directions is not returned."""
    job = make_job(private_directions="Old directions.")
    store = seeded_store(job, [make_result("c-1", job, 80)])
    service = build_service(store)

    assert asyncio.run(service.get_analysis_results("c-1")).final_score == 80
    store.add_job(make_job(private_directions="New directions."))
    assert asyncio.run(service.get_analysis_results("c-1")) is None


def test_get_analysis_results_for_never_analyzed_candidate():
    store = InMemoryStore(jobs=[make_job()], applications=[make_application()])
    assert asyncio.run(build_service(store).get_analysis_results("cand-1")) is None


def test_parse_resume_does_not_store(tmp_path):
    """parse_resume extracts facts without touching the store."""
    store = InMemoryStore(jobs=[make_job()])
    service = build_service(store, audit=AuditTrail(tmp_path))

    outcome = asyncio.run(service.parse_resume(SAMPLE_RESUME.encode("utf-8")))
    assert outcome.facts.name == "Jane Doe"
    assert store.facts == {}
    entry = _audit_entries(tmp_path)[-1]
    assert (entry["action"], entry["status"], entry["source"]) == ("parse_resume", "success", "bytes")


def test_get_analysis_results_for_unknown_candidate_is_none():
    """An id with no application reads as 'no current analysis' rather than raising."""
    store = InMemoryStore(jobs=[make_job()], applications=[make_application()])
    assert asyncio.run(build_service(store).get_analysis_results("nobody")) is None
