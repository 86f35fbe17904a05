"""Domain records: candidate facts, jobs, applications, analyses and ranking runs.

Records are frozen; a re-extraction or re-analysis replaces them wholesale.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import ClassVar, Union

from talent_screen.utils import hash_text, normalize_whitespace, parse_iso, to_iso

SCORE_FIELDS = ("resume_score", "questionery_score", "compliance_score", "final_score")
POINT_FIELDS = (
    "strong_points",
    "weak_points",
    "resume_strong_points",
    "resume_weak_points",
    "questionery_strong_points",
    "questionery_weak_points",
)


@dataclass(frozen=True)
class ContactInfo:
    email: str = ""
    phone: str = ""
    location: str = ""


@dataclass(frozen=True)
class ExperienceEntry:
    employer: str = ""
    title: str = ""
    duration: str = ""
    description: str = ""


@dataclass(frozen=True)
class EducationEntry:
    institution: str = ""
    degree: str = ""
    year: str = ""


def _dedupe(items) -> tuple[str, ...]:
    seen: set[str] = set()
    out = []
    for item in items or ():
        text = str(item).strip()
        if text and text.lower() not in seen:
            seen.add(text.lower())
            out.append(text)
    return tuple(out)


@dataclass(frozen=True)
class CandidateFacts:
    """Structured view of a résumé. Skills and certifications are de-duplicated case-insensitively."""

    name: str = ""
    contact: ContactInfo = field(default_factory=ContactInfo)
    experience: tuple[ExperienceEntry, ...] = ()
    education: tuple[EducationEntry, ...] = ()
    skills: tuple[str, ...] = ()
    certifications: tuple[str, ...] = ()
    summary: str = ""
    raw_text: str = ""

    def __post_init__(self):
        object.__setattr__(self, "skills", _dedupe(self.skills))
        object.__setattr__(self, "certifications", _dedupe(self.certifications))
        object.__setattr__(self, "experience", tuple(self.experience))
        object.__setattr__(self, "education", tuple(self.education))

    @property
    def is_structured(self) -> bool:
        return bool(self.experience or self.education or self.skills)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "contact": {
                "email": self.contact.email,
                "phone": self.contact.phone,
                "location": self.contact.location,
            },
            "experience": [
                {"employer": e.employer, "title": e.title, "duration": e.duration, "description": e.description}
                for e in self.experience
            ],
            "education": [
                {"institution": e.institution, "degree": e.degree, "year": e.year} for e in self.education
            ],
            "skills": list(self.skills),
            "certifications": list(self.certifications),
            "summary": self.summary,
            "raw_text": self.raw_text,
        }

    @classmethod
    def from_dict(cls, data: dict) -> CandidateFacts:
        contact = data.get("contact") or {}
        return cls(
            name=data.get("name") or "",
            contact=ContactInfo(
                email=contact.get("email") or "",
                phone=contact.get("phone") or "",
                location=contact.get("location") or "",
            ),
            experience=tuple(
                ExperienceEntry(
                    employer=e.get("employer") or "",
                    title=e.get("title") or "",
                    duration=e.get("duration") or "",
                    description=e.get("description") or "",
                )
                for e in data.get("experience") or []
            ),
            education=tuple(
                EducationEntry(
                    institution=e.get("institution") or "",
                    degree=e.get("degree") or "",
                    year=str(e.get("year") or ""),
                )
                for e in data.get("education") or []
            ),
            skills=tuple(data.get("skills") or ()),
            certifications=tuple(data.get("certifications") or ()),
            summary=data.get("summary") or "",
            raw_text=data.get("raw_text") or "",
        )


@dataclass(frozen=True)
class OracleExtraction:
    facts: CandidateFacts
    method: ClassVar[str] = "oracle"


@dataclass(frozen=True)
class FallbackExtraction:
    """Raw-text segmentation used when the extraction oracle is absent or failed."""

    facts: CandidateFacts
    reason: str = ""
    method: ClassVar[str] = "raw"


ExtractionOutcome = Union[OracleExtraction, FallbackExtraction]


def outcome_to_dict(outcome: ExtractionOutcome) -> dict:
    data = {"method": outcome.method, "facts": outcome.facts.to_dict()}
    if isinstance(outcome, FallbackExtraction):
        data["reason"] = outcome.reason
    return data


def outcome_from_dict(data: dict) -> ExtractionOutcome:
    facts = CandidateFacts.from_dict(data.get("facts") or {})
    if data.get("method") == OracleExtraction.method:
        return OracleExtraction(facts)
    return FallbackExtraction(facts, reason=data.get("reason") or "")


@dataclass(frozen=True)
class Job:
    """Read-only view of a job posting. Private directions are visible to the screening core only."""

    job_id: str
    title: str = ""
    description: str = ""
    requirements: tuple[str, ...] = ()
    responsibilities: tuple[str, ...] = ()
    private_directions: str = ""

    @property
    def has_private_directions(self) -> bool:
        return bool(self.private_directions.strip())

    @property
    def directions_version(self) -> str:
        return hash_text(normalize_whitespace(self.private_directions))

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "title": self.title,
            "description": self.description,
            "requirements": list(self.requirements),
            "responsibilities": list(self.responsibilities),
            "private_directions": self.private_directions,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Job:
        return cls(
            job_id=data["job_id"],
            title=data.get("title") or "",
            description=data.get("description") or "",
            requirements=tuple(data.get("requirements") or ()),
            responsibilities=tuple(data.get("responsibilities") or ()),
            private_directions=data.get("private_directions") or "",
        )


@dataclass(frozen=True)
class Application:
    """A candidate's submission for one job.

    ``resume_source`` is raw document bytes, an http(s) URL or a local path;
    it is only consulted when no résumé text or stored facts exist.
    """

    candidate_id: str
    job_id: str
    resume_text: str = ""
    resume_source: bytes | str | None = None
    cover_letter: str = ""
    answers: tuple[tuple[str, str], ...] = ()
    links: tuple[tuple[str, str], ...] = ()

    def __post_init__(self):
        if isinstance(self.answers, dict):
            object.__setattr__(self, "answers", tuple(self.answers.items()))
        if isinstance(self.links, dict):
            object.__setattr__(self, "links", tuple(self.links.items()))

    @property
    def has_resume(self) -> bool:
        return bool(self.resume_text.strip()) or bool(self.resume_source)

    def to_dict(self) -> dict:
        data = {
            "candidate_id": self.candidate_id,
            "job_id": self.job_id,
            "resume_text": self.resume_text,
            "cover_letter": self.cover_letter,
            "answers": [{"question": q, "answer": a} for q, a in self.answers],
            "links": {label: url for label, url in self.links},
        }
        if isinstance(self.resume_source, str):
            data["resume_url"] = self.resume_source
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Application:
        answers = data.get("answers") or []
        if isinstance(answers, dict):
            answers = [{"question": q, "answer": a} for q, a in answers.items()]
        return cls(
            candidate_id=data["candidate_id"],
            job_id=data["job_id"],
            resume_text=data.get("resume_text") or "",
            resume_source=data.get("resume_url") or None,
            cover_letter=data.get("cover_letter") or "",
            answers=tuple((a.get("question") or "", a.get("answer") or "") for a in answers),
            links=tuple((data.get("links") or {}).items()),
        )


@dataclass(frozen=True, order=True)
class AnalysisKey:
    """Cache identity of an analysis: a result is current only for this exact triple."""

    candidate_id: str
    job_id: str
    directions_version: str

    @classmethod
    def for_job(cls, candidate_id: str, job: Job) -> AnalysisKey:
        return cls(candidate_id=candidate_id, job_id=job.job_id, directions_version=job.directions_version)


@dataclass(frozen=True)
class AnalysisResult:
    key: AnalysisKey
    resume_score: float
    questionery_score: float
    compliance_score: float
    final_score: float
    strong_points: tuple[str, ...]
    weak_points: tuple[str, ...]
    analyzed_at: datetime
    stored: bool = False
    resume_strong_points: tuple[str, ...] = ()
    resume_weak_points: tuple[str, ...] = ()
    questionery_strong_points: tuple[str, ...] = ()
    questionery_weak_points: tuple[str, ...] = ()
    recruiter_remarks: str = ""
    meets_directions: bool | None = None
    compliance_reasoning: str = ""
    score_source: str = "oracle"
    extraction_method: str = ""
    model_id: str = ""
    prompt_version: str = ""

    def __post_init__(self):
        for name in SCORE_FIELDS:
            value = getattr(self, name)
            if value is None or isinstance(value, bool) or not math.isfinite(value) or not 0 <= value <= 100:
                raise ValueError(f"{name} must be a finite number in [0, 100], got {value!r}")
        for name in POINT_FIELDS:
            object.__setattr__(self, name, tuple(getattr(self, name)))

    @property
    def candidate_id(self) -> str:
        return self.key.candidate_id

    def match_reasons(self, limit: int = 3) -> list[str]:
        """Top strong points surfaced to other collaborators; the full list stays stored."""
        return list(self.strong_points[:limit])

    def as_stored(self) -> AnalysisResult:
        return replace(self, stored=True)

    def to_dict(self) -> dict:
        return {
            "candidate_id": self.key.candidate_id,
            "job_id": self.key.job_id,
            "directions_version": self.key.directions_version,
            "resume_score": self.resume_score,
            "questionery_score": self.questionery_score,
            "compliance_score": self.compliance_score,
            "final_score": self.final_score,
            "strong_points": list(self.strong_points),
            "weak_points": list(self.weak_points),
            "resume_strong_points": list(self.resume_strong_points),
            "resume_weak_points": list(self.resume_weak_points),
            "questionery_strong_points": list(self.questionery_strong_points),
            "questionery_weak_points": list(self.questionery_weak_points),
            "analyzed_at": to_iso(self.analyzed_at),
            "recruiter_remarks": self.recruiter_remarks,
            "meets_directions": self.meets_directions,
            "compliance_reasoning": self.compliance_reasoning,
            "score_source": self.score_source,
            "extraction_method": self.extraction_method,
            "model_id": self.model_id,
            "prompt_version": self.prompt_version,
        }

    @classmethod
    def from_dict(cls, data: dict, stored: bool = True) -> AnalysisResult:
        return cls(
            key=AnalysisKey(data["candidate_id"], data["job_id"], data["directions_version"]),
            resume_score=float(data["resume_score"]),
            questionery_score=float(data["questionery_score"]),
            compliance_score=float(data["compliance_score"]),
            final_score=float(data["final_score"]),
            strong_points=tuple(data.get("strong_points") or ()),
            weak_points=tuple(data.get("weak_points") or ()),
            analyzed_at=parse_iso(data["analyzed_at"]),
            resume_strong_points=tuple(data.get("resume_strong_points") or ()),
            resume_weak_points=tuple(data.get("resume_weak_points") or ()),
            questionery_strong_points=tuple(data.get("questionery_strong_points") or ()),
            questionery_weak_points=tuple(data.get("questionery_weak_points") or ()),
            stored=stored,
            recruiter_remarks=data.get("recruiter_remarks") or "",
            meets_directions=data.get("meets_directions"),
            compliance_reasoning=data.get("compliance_reasoning") or "",
            score_source=data.get("score_source") or "oracle",
            extraction_method=data.get("extraction_method") or "",
            model_id=data.get("model_id") or "",
            prompt_version=data.get("prompt_version") or "",
        )


@dataclass(frozen=True)
class RankedCandidate:
    candidate_id: str
    rank: int
    final_score: float
    compliance_score: float
    rationale: str


@dataclass(frozen=True)
class RankingRun:
    """One versioned, append-only ranking of a job's analyzed candidates."""

    job_id: str
    ranking_version: int
    algorithm_description: str
    last_ranked_at: datetime
    entries: tuple[RankedCandidate, ...] = ()
    directions_version: str = ""
    comparison_method: str = "deterministic"
    excluded: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "entries", tuple(self.entries))
        object.__setattr__(self, "excluded", tuple(self.excluded))
        if self.ranking_version < 1:
            raise ValueError(f"ranking_version must start at 1, got {self.ranking_version}")
        ranks = [entry.rank for entry in self.entries]
        if ranks != list(range(1, len(ranks) + 1)):
            raise ValueError(f"ranks must be dense 1..N in entry order, got {ranks}")

    @property
    def candidate_ids(self) -> list[str]:
        return [entry.candidate_id for entry in self.entries]

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "ranking_version": self.ranking_version,
            "algorithm_description": self.algorithm_description,
            "last_ranked_at": to_iso(self.last_ranked_at),
            "directions_version": self.directions_version,
            "comparison_method": self.comparison_method,
            "excluded": list(self.excluded),
            "entries": [
                {
                    "candidate_id": e.candidate_id,
                    "rank": e.rank,
                    "final_score": e.final_score,
                    "compliance_score": e.compliance_score,
                    "rationale": e.rationale,
                }
                for e in self.entries
            ],
        }

    @classmethod
    def from_dict(cls, data: dict) -> RankingRun:
        return cls(
            job_id=data["job_id"],
            ranking_version=int(data["ranking_version"]),
            algorithm_description=data.get("algorithm_description") or "",
            last_ranked_at=parse_iso(data["last_ranked_at"]),
            directions_version=data.get("directions_version") or "",
            comparison_method=data.get("comparison_method") or "deterministic",
            excluded=tuple(data.get("excluded") or ()),
            entries=tuple(
                RankedCandidate(
                    candidate_id=e["candidate_id"],
                    rank=int(e["rank"]),
                    final_score=float(e["final_score"]),
                    compliance_score=float(e["compliance_score"]),
                    rationale=e.get("rationale") or "",
                )
                for e in data.get("entries") or []
            ),
        )
