"""Schema validation for oracle responses and persisted records."""

import json
from functools import lru_cache
from pathlib import Path

import jsonschema

SCHEMAS_DIR = Path(__file__).resolve().parent / "schemas"


@lru_cache(maxsize=None)
def _load_schema(name: str) -> dict:
    path = SCHEMAS_DIR / f"{name}.schema.json"
    return json.loads(path.read_text(encoding="utf-8"))


def validate_score_response(data: dict) -> None:
    """Validate a scoring oracle response. Raises jsonschema.ValidationError if invalid."""
    jsonschema.validate(data, _load_schema("score_response"))


def validate_candidate_facts(data: dict) -> None:
    """Validate extraction oracle output. Raises jsonschema.ValidationError if invalid."""
    jsonschema.validate(data, _load_schema("candidate_facts"))


def validate_comparison_verdict(data: dict) -> None:
    """Validate a pairwise comparison verdict. Raises jsonschema.ValidationError if invalid."""
    jsonschema.validate(data, _load_schema("comparison_verdict"))


def validate_analysis_record(data: dict) -> None:
    """Validate a persisted analysis result. Raises jsonschema.ValidationError if invalid."""
    jsonschema.validate(data, _load_schema("analysis_result"))


def validate_ranking_record(data: dict) -> None:
    """Validate a persisted ranking run. Raises jsonschema.ValidationError if invalid."""
    jsonschema.validate(data, _load_schema("ranking_run"))


def error_path(error: jsonschema.ValidationError) -> str:
    """Dotted location of a validation error, e.g. ``strongPoints.2``; empty for the root."""
    return ".".join(str(p) for p in error.absolute_path)
