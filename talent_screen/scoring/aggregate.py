"""Turn a raw scoring-oracle payload into bounded, policy-aggregated scores.

Aggregation policy:
  1. Every score is coerced to a number (numeric strings accepted; anything
     else, NaN and infinities become 0) and clamped to [0, 100].
  2. A numeric ``finalScore`` from the oracle wins.
  3. Otherwise ``final = complianceScore``. With private directions the
     compliance score is mandatory, so it always dominates there.
  4. With no directions and no numeric compliance score, ``final`` is the
     mean of the résumé and questionnaire scores and compliance defaults
     to ``final``.

``strongPoints``/``weakPoints`` are the overall lists; the optional résumé and
questionnaire lists explain each artifact on its own.
"""

import math
from dataclasses import dataclass

import jsonschema

from talent_screen.errors import OracleResponseInvalid
from talent_screen.validation import error_path, validate_score_response

SCORE_MIN = 0.0
SCORE_MAX = 100.0


@dataclass(frozen=True)
class ScoreBreakdown:
    resume_score: float
    questionery_score: float
    compliance_score: float
    final_score: float
    score_source: str
    strong_points: tuple[str, ...]
    weak_points: tuple[str, ...]
    resume_strong_points: tuple[str, ...] = ()
    resume_weak_points: tuple[str, ...] = ()
    questionery_strong_points: tuple[str, ...] = ()
    questionery_weak_points: tuple[str, ...] = ()
    recruiter_remarks: str = ""
    meets_directions: bool | None = None
    compliance_reasoning: str = ""


def to_number(value) -> float | None:
    """Numeric value of ``value`` or None when it is not a finite number."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().rstrip("%"))
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def clamp_score(value) -> float:
    """Coerce to a finite number (0 if impossible) and clamp to [0, 100]."""
    number = to_number(value)
    if number is None:
        return SCORE_MIN
    return max(SCORE_MIN, min(SCORE_MAX, number))


def clean_points(points) -> tuple[str, ...]:
    """Non-empty, stripped strings in oracle order."""
    return tuple(p.strip() for p in points if isinstance(p, str) and p.strip())


def aggregate_scores(payload: dict, *, has_private_directions: bool) -> ScoreBreakdown:
    """Validate and aggregate a scoring payload. Raises OracleResponseInvalid."""
    if not isinstance(payload, dict):
        raise OracleResponseInvalid(f"Scoring response must be an object, got {type(payload).__name__}")
    try:
        validate_score_response(payload)
    except jsonschema.ValidationError as e:
        raise OracleResponseInvalid(
            f"Scoring response failed schema validation: {e.message}", field=error_path(e) or None
        ) from e
    if has_private_directions and "complianceScore" not in payload:
        raise OracleResponseInvalid(
            "Scoring response lacks complianceScore although the job has private directions",
            field="complianceScore",
        )

    resume = clamp_score(payload["resumeScore"])
    questionery = clamp_score(payload["questioneryScore"])
    raw_final = to_number(payload.get("finalScore"))

    raw_compliance = to_number(payload.get("complianceScore"))
    if has_private_directions or raw_compliance is not None:
        compliance = clamp_score(raw_compliance)
    else:
        compliance = None

    if raw_final is not None:
        final, source = clamp_score(raw_final), "oracle"
    elif compliance is not None:
        final, source = compliance, "compliance"
    else:
        final, source = (resume + questionery) / 2, "mean"
    if compliance is None:
        compliance = final

    return ScoreBreakdown(
        resume_score=resume,
        questionery_score=questionery,
        compliance_score=compliance,
        final_score=final,
        score_source=source,
        strong_points=clean_points(payload["strongPoints"]),
        weak_points=clean_points(payload["weakPoints"]),
        resume_strong_points=clean_points(payload.get("resumeStrongPoints") or ()),
        resume_weak_points=clean_points(payload.get("resumeWeakPoints") or ()),
        questionery_strong_points=clean_points(payload.get("questioneryStrongPoints") or ()),
        questionery_weak_points=clean_points(payload.get("questioneryWeakPoints") or ()),
        recruiter_remarks=(payload.get("recruiterRemarks") or "").strip(),
        meets_directions=payload.get("meetsDirections"),
        compliance_reasoning=(payload.get("complianceReasoning") or "").strip(),
    )
