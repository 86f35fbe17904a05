"""Oracle interfaces and their Groq implementations."""

from talent_screen.oracle.base import (
    ComparisonOracle,
    ExtractionOracle,
    ScoringOracle,
    ScoringRequest,
    with_timeout,
)
from talent_screen.oracle.client import GroqJSONClient, parse_json_object
from talent_screen.oracle.comparison import GroqComparisonOracle
from talent_screen.oracle.extraction import GroqExtractionOracle
from talent_screen.oracle.retry import call_with_retry
from talent_screen.oracle.scoring import GroqScoringOracle

__all__ = [
    "ScoringOracle",
    "ExtractionOracle",
    "ComparisonOracle",
    "ScoringRequest",
    "with_timeout",
    "call_with_retry",
    "GroqJSONClient",
    "parse_json_object",
    "GroqScoringOracle",
    "GroqExtractionOracle",
    "GroqComparisonOracle",
]
