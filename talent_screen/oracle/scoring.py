"""Groq-backed scoring oracle: one application against one job."""

from talent_screen.oracle.base import ScoringOracle, ScoringRequest
from talent_screen.oracle.client import GroqJSONClient, audit_block, load_prompt, render_prompt

PROMPT_VERSION = "1.2.0"

DIRECTIONS_SECTION = """PRIVATE DIRECTIONS (internal, HIGH PRIORITY, MUST DOMINATE THE ASSESSMENT):
{{private_directions}}

If the candidate does not meet the private directions, this must show in the weak points and in the compliance score.
"""

RULES_WITH_DIRECTIONS = """5. Score (0-100): resumeScore, questioneryScore, and complianceScore = how fully the candidate satisfies the PRIVATE DIRECTIONS.
   complianceScore becomes the candidate's final score, so it must reflect the whole application seen through the private directions.
   Do NOT return a finalScore."""

RULES_WITHOUT_DIRECTIONS = """5. Score (0-100): resumeScore, questioneryScore, and finalScore = holistic fit considering both together (it may differ from the average)."""

SHAPE_WITH_DIRECTIONS = """{
  "resumeScore": 0-100,
  "questioneryScore": 0-100,
  "complianceScore": 0-100,
  "meetsDirections": true or false,
  "complianceReasoning": "how the candidate meets or misses the private directions",
  "strongPoints": ["most important first"],
  "weakPoints": ["most important first; may be empty"],
  "resumeStrongPoints": ["strengths shown by the résumé alone"],
  "resumeWeakPoints": ["gaps in the résumé alone; may be empty"],
  "questioneryStrongPoints": ["strengths shown by the cover letter and answers"],
  "questioneryWeakPoints": ["gaps in the cover letter and answers; may be empty"],
  "recruiterRemarks": "2-3 sentences"
}"""

SHAPE_WITHOUT_DIRECTIONS = """{
  "resumeScore": 0-100,
  "questioneryScore": 0-100,
  "finalScore": 0-100,
  "strongPoints": ["most important first"],
  "weakPoints": ["most important first; may be empty"],
  "resumeStrongPoints": ["strengths shown by the résumé alone"],
  "resumeWeakPoints": ["gaps in the résumé alone; may be empty"],
  "questioneryStrongPoints": ["strengths shown by the cover letter and answers"],
  "questioneryWeakPoints": ["gaps in the cover letter and answers; may be empty"],
  "recruiterRemarks": "2-3 sentences"
}"""

NO_QUESTIONNAIRE = "No questionnaire provided (no cover letter or answers)."


def build_scoring_prompt(request: ScoringRequest) -> str:
    if request.has_private_directions:
        directions = render_prompt(DIRECTIONS_SECTION, private_directions=request.private_directions.strip())
        rules, shape = RULES_WITH_DIRECTIONS, SHAPE_WITH_DIRECTIONS
    else:
        directions, rules, shape = "", RULES_WITHOUT_DIRECTIONS, SHAPE_WITHOUT_DIRECTIONS
    return render_prompt(
        load_prompt("score_application"),
        job_title=request.job_title,
        job_description=request.job_description,
        directions_section=directions,
        resume_text=request.resume_text,
        questionnaire_text=request.questionnaire_text if request.has_questionnaire else NO_QUESTIONNAIRE,
        scoring_rules=rules,
        response_shape=shape,
    )


class GroqScoringOracle(ScoringOracle):
    def __init__(self, client: GroqJSONClient):
        self._client = client

    async def score(self, request: ScoringRequest) -> dict:
        prompt = build_scoring_prompt(request)
        data, model = await self._client.complete_json_with_model(prompt)
        data["_audit"] = audit_block(model, PROMPT_VERSION, prompt)
        return data
