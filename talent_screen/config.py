"""Runtime settings, read from the environment (and .env via python-dotenv)."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_SCORING_MODEL = "llama-3.3-70b-versatile"
# Extraction is high-volume and schema-bound; the 8B model is enough
DEFAULT_EXTRACT_MODEL = "llama-3.1-8b-instant"
MAX_CONTENT_LENGTH = 16 * 1024 * 1024
# Tried in order when the configured model is missing, decommissioned or overloaded
DEFAULT_FALLBACK_MODELS = ("llama-3.1-8b-instant",)

RANKING_COMPARISON_MODES = ("oracle", "deterministic")


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _env_float(env, name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def _env_int(env, name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    groq_api_key: str = ""
    scoring_model: str = DEFAULT_SCORING_MODEL
    extract_model: str = DEFAULT_EXTRACT_MODEL
    compare_model: str = DEFAULT_SCORING_MODEL
    fallback_models: tuple[str, ...] = DEFAULT_FALLBACK_MODELS
    oracle_timeout: float = 60.0
    oracle_max_attempts: int = 3
    oracle_backoff_min: float = 2.0
    oracle_backoff_max: float = 10.0
    fetch_timeout: float = 20.0
    max_document_bytes: int = MAX_CONTENT_LENGTH
    use_extraction_oracle: bool = True
    ranking_comparison: str = "oracle"
    ranking_near_tie_margin: float = 2.0
    match_reason_limit: int = 3
    data_dir: Path = Path("data")
    log_dir: Path = Path("logs")
    log_level: str = "INFO"

    def __post_init__(self):
        if self.ranking_comparison not in RANKING_COMPARISON_MODES:
            raise ValueError(
                f"ranking_comparison must be one of {RANKING_COMPARISON_MODES}, got {self.ranking_comparison!r}"
            )
        if self.oracle_max_attempts < 1:
            raise ValueError("oracle_max_attempts must be at least 1")
        if self.ranking_near_tie_margin < 0:
            raise ValueError("ranking_near_tie_margin must be >= 0")

    @classmethod
    def from_env(cls, env=None) -> "Settings":
        """Build settings from ``env`` (defaults to os.environ after loading .env)."""
        if env is None:
            load_dotenv()
            env = os.environ
        fallback_model = env.get("GROQ_MODEL") or DEFAULT_SCORING_MODEL
        return cls(
            groq_api_key=env.get("GROQ_API_KEY", ""),
            scoring_model=env.get("GROQ_SCORING_MODEL") or fallback_model,
            extract_model=env.get("GROQ_EXTRACT_MODEL") or env.get("GROQ_MODEL") or DEFAULT_EXTRACT_MODEL,
            compare_model=env.get("GROQ_COMPARE_MODEL") or fallback_model,
            fallback_models=_env_list(env.get("GROQ_FALLBACK_MODELS"), DEFAULT_FALLBACK_MODELS),
            oracle_timeout=_env_float(env, "ORACLE_TIMEOUT_SECONDS", 60.0),
            oracle_max_attempts=_env_int(env, "ORACLE_MAX_ATTEMPTS", 3),
            oracle_backoff_min=_env_float(env, "ORACLE_BACKOFF_MIN", 2.0),
            oracle_backoff_max=_env_float(env, "ORACLE_BACKOFF_MAX", 10.0),
            fetch_timeout=_env_float(env, "FETCH_TIMEOUT_SECONDS", 20.0),
            max_document_bytes=_env_int(env, "MAX_DOCUMENT_BYTES", MAX_CONTENT_LENGTH),
            use_extraction_oracle=_env_bool(env.get("USE_EXTRACTION_ORACLE"), True),
            ranking_comparison=(env.get("RANKING_COMPARISON") or "oracle").strip().lower(),
            ranking_near_tie_margin=_env_float(env, "RANKING_NEAR_TIE_MARGIN", 2.0),
            match_reason_limit=_env_int(env, "MATCH_REASON_LIMIT", 3),
            data_dir=Path(env.get("TALENT_SCREEN_DATA_DIR") or "data"),
            log_dir=Path(env.get("TALENT_SCREEN_LOG_DIR") or "logs"),
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )
