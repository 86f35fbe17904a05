"""Persistence collaborator: jobs, applications, facts, analyses and ranking runs.

Analyses are replaced atomically per candidate; ranking runs are append-only
per job and every append checks the previous version.
"""

import asyncio
import json
import logging
import os
import re
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path

import jsonschema

from talent_screen.errors import ApplicationNotFound, JobNotFound, RankingVersionConflict, StoreError
from talent_screen.models import (
    AnalysisResult,
    Application,
    ExtractionOutcome,
    Job,
    RankingRun,
    outcome_from_dict,
    outcome_to_dict,
)
from talent_screen.utils import safe_name
from talent_screen.validation import validate_analysis_record, validate_ranking_record

log = logging.getLogger(__name__)


class Store(ABC):
    @abstractmethod
    async def get_job(self, job_id: str) -> Job:
        """Raises JobNotFound."""

    @abstractmethod
    async def get_application(self, candidate_id: str) -> Application:
        """Raises ApplicationNotFound."""

    @abstractmethod
    async def list_candidates(self, job_id: str) -> list[str]:
        """Candidate ids that applied to ``job_id``, sorted."""

    @abstractmethod
    async def get_candidate_facts(self, candidate_id: str) -> ExtractionOutcome | None: ...

    @abstractmethod
    async def put_candidate_facts(self, candidate_id: str, outcome: ExtractionOutcome) -> None: ...

    @abstractmethod
    async def get_analysis(self, candidate_id: str) -> AnalysisResult | None: ...

    @abstractmethod
    async def replace_analysis(self, result: AnalysisResult) -> None:
        """All-or-nothing replacement of the candidate's analysis."""

    @abstractmethod
    async def put_match_reasons(self, candidate_id: str, reasons: list[str]) -> None: ...

    @abstractmethod
    async def latest_ranking(self, job_id: str) -> RankingRun | None: ...

    @abstractmethod
    async def append_ranking(self, run: RankingRun, expected_previous: int) -> None:
        """Append ``run`` only if the job's latest version is ``expected_previous`` (0 = none)."""

    @abstractmethod
    async def list_rankings(self, job_id: str) -> list[RankingRun]: ...

    @abstractmethod
    async def get_comparison(self, job_id: str, key: str) -> dict | None:
        """Stored pairwise verdict ``{"winner", "reason"}`` for ``key``, if any."""

    @abstractmethod
    async def put_comparison(self, job_id: str, key: str, verdict: dict) -> None: ...

class InMemoryStore(Store):
    """Process-local store; also the reference behaviour for tests."""

    def __init__(self, jobs=(), applications=()):
        self.jobs: dict[str, Job] = {j.job_id: j for j in jobs}
        self.applications: dict[str, Application] = {a.candidate_id: a for a in applications}
        self.facts: dict[str, ExtractionOutcome] = {}
        self.analyses: dict[str, AnalysisResult] = {}
        self.match_reasons: dict[str, list[str]] = {}
        self.rankings: dict[str, list[RankingRun]] = {}
        self.comparisons: dict[tuple[str, str], dict] = {}

    def add_job(self, job: Job):
        self.jobs[job.job_id] = job

    def add_application(self, application: Application):
        self.applications[application.candidate_id] = application

    async def get_job(self, job_id):
        try:
            return self.jobs[job_id]
        except KeyError:
            raise JobNotFound(job_id) from None

    async def get_application(self, candidate_id):
        try:
            return self.applications[candidate_id]
        except KeyError:
            raise ApplicationNotFound(candidate_id) from None

    async def list_candidates(self, job_id):
        return sorted(a.candidate_id for a in self.applications.values() if a.job_id == job_id)

    async def get_candidate_facts(self, candidate_id):
        return self.facts.get(candidate_id)

    async def put_candidate_facts(self, candidate_id, outcome):
        self.facts[candidate_id] = outcome

    async def get_analysis(self, candidate_id):
        return self.analyses.get(candidate_id)

    async def replace_analysis(self, result):
        self.analyses[result.candidate_id] = result.as_stored()

    async def put_match_reasons(self, candidate_id, reasons):
        self.match_reasons[candidate_id] = list(reasons)

    async def latest_ranking(self, job_id):
        runs = self.rankings.get(job_id)
        return runs[-1] if runs else None

    async def append_ranking(self, run, expected_previous):
        runs = self.rankings.setdefault(run.job_id, [])
        actual = runs[-1].ranking_version if runs else 0
        if actual != expected_previous or run.ranking_version != expected_previous + 1:
            raise RankingVersionConflict(run.job_id, expected_previous, actual)
        runs.append(run)

    async def list_rankings(self, job_id):
        return list(self.rankings.get(job_id, []))

    async def get_comparison(self, job_id, key):
        return self.comparisons.get((job_id, key))

    async def put_comparison(self, job_id, key, verdict):
        self.comparisons[(job_id, key)] = dict(verdict)


_RANKING_FILE = re.compile(r"^v(\d+)\.json$")


class JsonFileStore(Store):
    """
    JSON documents under ``root``:

        jobs/<job_id>.json, applications/<candidate_id>.json,
        facts/<candidate_id>.json, analyses/<candidate_id>.json,
        match_reasons/<candidate_id>.json, rankings/<job_id>/v<N>.json,
        comparisons/<job_id>/<verdict key>.json

    Writes go to a temp file in the target directory followed by os.replace, so
    readers see either the old or the new document. Ranking versions are
    published with os.link, which fails if the version already exists.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self._lock = threading.Lock()

    def _path(self, kind: str, name: str) -> Path:
        return self.root / kind / f"{safe_name(name)}.json"

    def _read(self, path: Path) -> dict | None:
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Cannot read {path}: {e}") from e

    def _write_temp(self, directory: Path, data: dict) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=directory, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        return Path(tmp)

    def _write_atomic(self, path: Path, data: dict):
        try:
            tmp = self._write_temp(path.parent, data)
            os.replace(tmp, path)
        except OSError as e:
            raise StoreError(f"Cannot write {path}: {e}") from e

    # Seeding helpers (jobs and applications are owned by other services)

    def save_job(self, job: Job):
        self._write_atomic(self._path("jobs", job.job_id), job.to_dict())

    def save_application(self, application: Application):
        self._write_atomic(self._path("applications", application.candidate_id), application.to_dict())

    async def get_job(self, job_id):
        data = await asyncio.to_thread(self._read, self._path("jobs", job_id))
        if data is None:
            raise JobNotFound(job_id)
        return Job.from_dict(data)

    async def get_application(self, candidate_id):
        data = await asyncio.to_thread(self._read, self._path("applications", candidate_id))
        if data is None:
            raise ApplicationNotFound(candidate_id)
        return Application.from_dict(data)

    def _list_candidates(self, job_id: str) -> list[str]:
        directory = self.root / "applications"
        if not directory.is_dir():
            return []
        ids = []
        for path in directory.glob("*.json"):
            data = self._read(path)
            if data and data.get("job_id") == job_id:
                ids.append(data["candidate_id"])
        return sorted(ids)

    async def list_candidates(self, job_id):
        return await asyncio.to_thread(self._list_candidates, job_id)

    async def get_candidate_facts(self, candidate_id):
        data = await asyncio.to_thread(self._read, self._path("facts", candidate_id))
        return outcome_from_dict(data) if data is not None else None

    async def put_candidate_facts(self, candidate_id, outcome):
        await asyncio.to_thread(self._write_atomic, self._path("facts", candidate_id), outcome_to_dict(outcome))

    async def get_analysis(self, candidate_id):
        data = await asyncio.to_thread(self._read, self._path("analyses", candidate_id))
        if data is None:
            return None
        try:
            return AnalysisResult.from_dict(data, stored=True)
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Corrupt analysis record for {candidate_id}: {e}") from e

    async def replace_analysis(self, result):
        record = result.to_dict()
        try:
            validate_analysis_record(record)
        except jsonschema.ValidationError as e:
            raise StoreError(f"Refusing to store invalid analysis for {result.candidate_id}: {e.message}") from e
        await asyncio.to_thread(self._write_atomic, self._path("analyses", result.candidate_id), record)

    async def put_match_reasons(self, candidate_id, reasons):
        await asyncio.to_thread(
            self._write_atomic, self._path("match_reasons", candidate_id), {"match_reasons": list(reasons)}
        )

    def _ranking_versions(self, job_id: str) -> list[int]:
        directory = self.root / "rankings" / safe_name(job_id)
        if not directory.is_dir():
            return []
        versions = []
        for path in directory.iterdir():
            match = _RANKING_FILE.match(path.name)
            if match:
                versions.append(int(match.group(1)))
        return sorted(versions)

    def _load_ranking(self, job_id: str, version: int) -> RankingRun:
        path = self.root / "rankings" / safe_name(job_id) / f"v{version}.json"
        data = self._read(path)
        if data is None:
            raise StoreError(f"Ranking {path} disappeared while reading")
        return RankingRun.from_dict(data)

    def _latest_ranking(self, job_id: str) -> RankingRun | None:
        versions = self._ranking_versions(job_id)
        return self._load_ranking(job_id, versions[-1]) if versions else None

    async def latest_ranking(self, job_id):
        return await asyncio.to_thread(self._latest_ranking, job_id)

    def _append_ranking(self, run: RankingRun, expected_previous: int):
        record = run.to_dict()
        try:
            validate_ranking_record(record)
        except jsonschema.ValidationError as e:
            raise StoreError(f"Refusing to store invalid ranking for {run.job_id}: {e.message}") from e

        directory = self.root / "rankings" / safe_name(run.job_id)
        target = directory / f"v{run.ranking_version}.json"
        with self._lock:
            versions = self._ranking_versions(run.job_id)
            actual = versions[-1] if versions else 0
            if actual != expected_previous or run.ranking_version != expected_previous + 1:
                raise RankingVersionConflict(run.job_id, expected_previous, actual)
            try:
                tmp = self._write_temp(directory, record)
            except OSError as e:
                raise StoreError(f"Cannot write {target}: {e}") from e
            try:
                os.link(tmp, target)
            except FileExistsError:
                raise RankingVersionConflict(run.job_id, expected_previous, run.ranking_version) from None
            except OSError as e:
                raise StoreError(f"Cannot publish {target}: {e}") from e
            finally:
                tmp.unlink(missing_ok=True)

    async def append_ranking(self, run, expected_previous):
        await asyncio.to_thread(self._append_ranking, run, expected_previous)

    def _list_rankings(self, job_id: str) -> list[RankingRun]:
        return [self._load_ranking(job_id, v) for v in self._ranking_versions(job_id)]

    async def list_rankings(self, job_id):
        return await asyncio.to_thread(self._list_rankings, job_id)

    def _comparison_path(self, job_id: str, key: str) -> Path:
        return self.root / "comparisons" / safe_name(job_id) / f"{safe_name(key)}.json"

    async def get_comparison(self, job_id, key):
        return await asyncio.to_thread(self._read, self._comparison_path(job_id, key))

    async def put_comparison(self, job_id, key, verdict):
        await asyncio.to_thread(self._write_atomic, self._comparison_path(job_id, key), dict(verdict))
