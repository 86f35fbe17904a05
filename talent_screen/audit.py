"""Audit trail for analysis runs and exposed operations."""

import csv
import json
import logging
from pathlib import Path

from talent_screen.models import AnalysisResult
from talent_screen.utils import iso_now

CSV_HEADERS = [
    "timestamp",
    "candidate_id",
    "job_id",
    "directions_version",
    "model",
    "prompt_version",
    "resume_score",
    "questionery_score",
    "compliance_score",
    "final_score",
    "score_source",
    "num_strong_points",
    "num_weak_points",
    "meets_directions",
    "extraction_method",
    "stored",
    "scoring_rationale",
]


class AuditTrail:
    """Appends JSONL audit entries and a per-analysis performance log under ``log_dir``."""

    def __init__(self, log_dir: str | Path):
        self.log_dir = Path(log_dir)
        self.audit_file = self.log_dir / "audit.log"
        self.perf_jsonl = self.log_dir / "model_performance.jsonl"
        self.perf_csv = self.log_dir / "model_performance.csv"

    def _ensure_log_dir(self):
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def record(self, action: str, status: str, *, error: str | None = None, **fields):
        """Append a structured audit entry to the audit log (JSONL)."""
        self._ensure_log_dir()
        entry = {"timestamp": iso_now(), "action": action, "status": status}
        entry.update({k: v for k, v in fields.items() if v is not None})
        if error:
            entry["error"] = error
        with open(self.audit_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, default=str) + "\n")

    def record_analysis(self, result: AnalysisResult):
        """
        Log one analysis for later review: scores, which aggregation branch produced
        the final score, and why. Writes model_performance.jsonl and model_performance.csv.
        """
        self._ensure_log_dir()
        rationale = (
            f"final {result.final_score:g} from {result.score_source}; "
            f"resume {result.resume_score:g}, questionnaire {result.questionery_score:g}, "
            f"compliance {result.compliance_score:g}; "
            f"{len(result.strong_points)} strong / {len(result.weak_points)} weak points."
        )
        entry = {
            "timestamp": iso_now(),
            "candidate_id": result.key.candidate_id,
            "job_id": result.key.job_id,
            "directions_version": result.key.directions_version,
            "model": result.model_id,
            "prompt_version": result.prompt_version,
            "resume_score": result.resume_score,
            "questionery_score": result.questionery_score,
            "compliance_score": result.compliance_score,
            "final_score": result.final_score,
            "score_source": result.score_source,
            "num_strong_points": len(result.strong_points),
            "num_weak_points": len(result.weak_points),
            "meets_directions": result.meets_directions,
            "extraction_method": result.extraction_method,
            "stored": result.stored,
            "scoring_rationale": rationale,
        }

        with open(self.perf_jsonl, "a", encoding="utf-8") as f:
            f.write(json.dumps({**entry, "strong_points": list(result.strong_points),
                                "weak_points": list(result.weak_points)}, default=str) + "\n")

        csv_exists = self.perf_csv.exists()
        with open(self.perf_csv, "a", encoding="utf-8", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=CSV_HEADERS)
            if not csv_exists:
                writer.writeheader()
            writer.writerow({k: ("" if v is None else v) for k, v in entry.items()})


def setup_app_logging(log_dir: str | Path = "logs", level: str = "INFO") -> logging.Logger:
    """Configure application logging to console and file."""
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    logger = logging.getLogger("talent_screen")
    if logger.handlers:
        return logger
    logger.setLevel(logging.DEBUG)

    fmt = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"

    # Console
    ch = logging.StreamHandler()
    ch.setLevel(getattr(logging, level.upper(), logging.INFO))
    ch.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    logger.addHandler(ch)

    # File
    fh = logging.FileHandler(log_dir / "app.log", encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    logger.addHandler(fh)

    return logger
