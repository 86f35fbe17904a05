"""Groq-backed pairwise comparison for near-tied candidates."""

from talent_screen.models import AnalysisResult, Job
from talent_screen.oracle.base import ComparisonOracle
from talent_screen.oracle.client import GroqJSONClient, load_prompt, render_prompt
from talent_screen.oracle.scoring import DIRECTIONS_SECTION

PROMPT_VERSION = "1.0.0"


def describe_candidate(result: AnalysisResult) -> str:
    lines = [
        f"- Final score: {result.final_score:g}",
        f"- Private directions compliance: {result.compliance_score:g}"
        + (f" (meets: {result.meets_directions})" if result.meets_directions is not None else ""),
        f"- Strong points: {'; '.join(result.strong_points) or 'none listed'}",
        f"- Weak points: {'; '.join(result.weak_points) or 'none listed'}",
    ]
    for label, points in (
        ("Résumé strengths", result.resume_strong_points),
        ("Résumé gaps", result.resume_weak_points),
        ("Questionnaire strengths", result.questionery_strong_points),
        ("Questionnaire gaps", result.questionery_weak_points),
    ):
        if points:
            lines.append(f"- {label}: {'; '.join(points)}")
    if result.compliance_reasoning:
        lines.append(f"- Compliance reasoning: {result.compliance_reasoning}")
    if result.recruiter_remarks:
        lines.append(f"- Recruiter remarks: {result.recruiter_remarks}")
    return "\n".join(lines)


class GroqComparisonOracle(ComparisonOracle):
    def __init__(self, client: GroqJSONClient):
        self._client = client

    async def compare(self, job: Job, first: AnalysisResult, second: AnalysisResult) -> dict:
        directions = (
            render_prompt(DIRECTIONS_SECTION, private_directions=job.private_directions.strip())
            if job.has_private_directions
            else ""
        )
        prompt = render_prompt(
            load_prompt("compare_candidates"),
            job_title=job.title,
            job_description=job.description,
            directions_section=directions,
            first_candidate=describe_candidate(first),
            second_candidate=describe_candidate(second),
        )
        return await self._client.complete_json(prompt)
