"""Scoring: score aggregation, per-candidate analysis and comparative ranking."""

from talent_screen.scoring.aggregate import ScoreBreakdown, aggregate_scores, clamp_score
from talent_screen.scoring.analysis import AnalysisEngine
from talent_screen.scoring.ranking import RankingEngine, base_sort_key, policy_verdict

__all__ = [
    "ScoreBreakdown",
    "aggregate_scores",
    "clamp_score",
    "AnalysisEngine",
    "RankingEngine",
    "base_sort_key",
    "policy_verdict",
]
