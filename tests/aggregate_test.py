"""Score aggregation policy: clamping, coercion and which score becomes final."""

import math

import pytest

from talent_screen.errors import OracleResponseInvalid
from talent_screen.scoring.aggregate import aggregate_scores, clamp_score, clean_points


BASE = {
    "resumeScore": 80,
    "questioneryScore": 60,
    "strongPoints": ["Python"],
    "weakPoints": [],
}


def test_clamp_score_bounds_and_coercion():
    """Out-of-range values clamp; non-numeric, NaN, inf and bools become 0."""
    assert clamp_score(150) == 100
    assert clamp_score(-3) == 0
    assert clamp_score("72.5") == 72.5
    assert clamp_score("88%") == 88
    assert clamp_score("excellent") == 0
    assert clamp_score(None) == 0
    assert clamp_score(True) == 0
    assert clamp_score(math.nan) == 0
    assert clamp_score(math.inf) == 0
    assert clamp_score([90]) == 0


def test_compliance_becomes_final_with_private_directions():
    """No finalScore + private directions → finalScore = complianceScore."""
    scores = aggregate_scores({**BASE, "complianceScore": 35}, has_private_directions=True)
    assert scores.final_score == 35
    assert scores.compliance_score == 35
    assert scores.score_source == "compliance"


def test_explicit_final_score_wins():
    """A numeric finalScore from the oracle is used as-is (clamped)."""
    scores = aggregate_scores({**BASE, "complianceScore": 35, "finalScore": 140}, has_private_directions=True)
    assert scores.final_score == 100
    assert scores.score_source == "oracle"


def test_non_numeric_final_score_falls_back_to_compliance():
    """A non-numeric finalScore is treated as absent."""
    scores = aggregate_scores({**BASE, "complianceScore": 61, "finalScore": "n/a"}, has_private_directions=True)
    assert scores.final_score == 61
    assert scores.score_source == "compliance"


def test_compliance_used_without_directions_when_given():
    """Without directions, a numeric complianceScore still stands in for a missing finalScore."""
    scores = aggregate_scores({**BASE, "complianceScore": 90}, has_private_directions=False)
    assert scores.final_score == 90
    assert scores.score_source == "compliance"


def test_mean_without_directions_or_compliance():
    """No directions, no compliance, no final → mean of resume and questionnaire; compliance mirrors final."""
    scores = aggregate_scores(dict(BASE), has_private_directions=False)
    assert scores.final_score == 70
    assert scores.compliance_score == 70
    assert scores.score_source == "mean"


def test_non_numeric_compliance_with_directions_is_zero():
    """complianceScore present but garbage → 0, which also becomes final."""
    scores = aggregate_scores({**BASE, "complianceScore": "high"}, has_private_directions=True)
    assert scores.compliance_score == 0
    assert scores.final_score == 0


def test_missing_compliance_with_directions_is_invalid():
    """Jobs with private directions require complianceScore."""
    with pytest.raises(OracleResponseInvalid) as exc_info:
        aggregate_scores(dict(BASE), has_private_directions=True)
    assert exc_info.value.field == "complianceScore"


def test_missing_required_field_is_invalid():
    """strongPoints is mandatory."""
    payload = {k: v for k, v in BASE.items() if k != "strongPoints"}
    with pytest.raises(OracleResponseInvalid):
        aggregate_scores(payload, has_private_directions=False)


def test_points_must_be_lists():
    """A string where a list is expected fails schema validation."""
    with pytest.raises(OracleResponseInvalid):
        aggregate_scores({**BASE, "weakPoints": "none"}, has_private_directions=False)


def test_clean_points_drops_blanks_and_non_strings():
    """Order preserved; blanks and non-strings removed."""
    assert clean_points([" Python ", "", 3, None, "AWS"]) == ("Python", "AWS")


def test_full_point_lists_are_kept():
    """Aggregation never truncates points; truncation is only for match reasons."""
    points = [f"point {i}" for i in range(7)]
    scores = aggregate_scores({**BASE, "strongPoints": points}, has_private_directions=False)
    assert len(scores.strong_points) == 7


def test_per_artifact_points_are_kept_apart_from_overall_lists():
    """Résumé and questionnaire lists are cleaned and carried next to strongPoints/weakPoints."""
    payload = {
        **BASE,
        "complianceScore": 70,
        "resumeStrongPoints": [" Python ", ""],
        "resumeWeakPoints": ["No cloud work"],
        "questioneryStrongPoints": ["Clear motivation"],
        "questioneryWeakPoints": None,
    }
    scores = aggregate_scores(payload, has_private_directions=True)
    assert scores.strong_points == ("Python",)
    assert scores.resume_strong_points == ("Python",)
    assert scores.resume_weak_points == ("No cloud work",)
    assert scores.questionery_strong_points == ("Clear motivation",)
    assert scores.questionery_weak_points == ()


def test_per_artifact_points_are_optional():
    scores = aggregate_scores(BASE, has_private_directions=False)
    assert scores.resume_strong_points == scores.resume_weak_points == ()
    assert scores.questionery_strong_points == scores.questionery_weak_points == ()


def test_per_artifact_points_must_be_lists():
    with pytest.raises(OracleResponseInvalid):
        aggregate_scores({**BASE, "resumeStrongPoints": "Python"}, has_private_directions=False)
