"""Groq-backed résumé structuring."""

import logging

import jsonschema

from talent_screen.errors import OracleResponseInvalid
from talent_screen.models import CandidateFacts
from talent_screen.oracle.base import ExtractionOracle
from talent_screen.oracle.client import GroqJSONClient, load_prompt, render_prompt
from talent_screen.validation import error_path, validate_candidate_facts

log = logging.getLogger(__name__)

PROMPT_VERSION = "1.0.0"
# Long résumés are cut before prompting; the full text is kept in CandidateFacts.raw_text
MAX_PROMPT_CHARS = 12000


class GroqExtractionOracle(ExtractionOracle):
    def __init__(self, client: GroqJSONClient):
        self._client = client

    async def extract(self, raw_text: str) -> CandidateFacts:
        prompt = render_prompt(load_prompt("extract_resume"), resume_text=raw_text[:MAX_PROMPT_CHARS])
        data = await self._client.complete_json(prompt)
        try:
            validate_candidate_facts(data)
        except jsonschema.ValidationError as e:
            raise OracleResponseInvalid(
                f"Extraction response failed schema validation: {e.message}", field=error_path(e) or None
            ) from e
        facts = CandidateFacts.from_dict({**data, "raw_text": raw_text})
        log.debug(
            "Extracted %d experience, %d education, %d skills",
            len(facts.experience),
            len(facts.education),
            len(facts.skills),
        )
        return facts
