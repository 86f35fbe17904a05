"""Groq chat-completions client returning parsed JSON objects."""

import json
import logging
from pathlib import Path

import groq
from groq import AsyncGroq

from talent_screen.errors import OracleResponseInvalid, OracleUnavailable
from talent_screen.utils import hash_text

log = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"
MODEL_PARAMS = {"temperature": 0, "top_p": 1}

# 408/409/429 and 5xx are transient on Groq's side; anything else (auth, bad request) is not
_RETRYABLE_STATUS = {408, 409, 429}


def load_prompt(name: str) -> str:
    prompt_path = PROMPTS_DIR / f"{name}.txt"
    return prompt_path.read_text(encoding="utf-8")


def render_prompt(template: str, **values: str) -> str:
    """Replace ``{{name}}`` placeholders. Values are inserted verbatim (no format-spec parsing)."""
    prompt = template
    for name, value in values.items():
        prompt = prompt.replace("{{" + name + "}}", value)
    return prompt


def parse_json_object(content: str) -> dict:
    """Parse a model reply as a JSON object, tolerating markdown code fences."""
    text = (content or "").strip()
    if text.startswith("```"):
        lines = text.split("\n")
        if lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise OracleResponseInvalid(f"Invalid JSON from model: {e}") from e
    if not isinstance(data, dict):
        raise OracleResponseInvalid(f"Expected a JSON object from model, got {type(data).__name__}")
    return data


class GroqJSONClient:
    """
    Thin async wrapper over Groq that maps SDK errors onto the oracle error taxonomy.

    ``model`` is tried first, then each of ``fallback_models`` in order. A model
    that is missing, decommissioned, rate-limited or failing server-side hands
    over to the next one; auth and other request errors stop the chain.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        fallback_models=(),
        timeout: float | None = None,
        client: AsyncGroq | None = None,
    ):
        if client is None and not api_key:
            raise ValueError("GROQ_API_KEY is required. Set it in .env or pass api_key.")
        # Retries are owned by talent_screen.oracle.retry, so the SDK must not retry on its own
        self._client = client or AsyncGroq(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = model
        self.models = tuple(dict.fromkeys(m for m in (model, *fallback_models) if m))

    async def complete_json(self, prompt: str) -> dict:
        data, _ = await self.complete_json_with_model(prompt)
        return data

    async def complete_json_with_model(self, prompt: str) -> tuple[dict, str]:
        """Parsed reply plus the model that produced it."""
        errors = []
        retryable = False
        for model in self.models:
            try:
                response = await self._client.chat.completions.create(
                    model=model,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=MODEL_PARAMS["temperature"],
                    top_p=MODEL_PARAMS["top_p"],
                    response_format={"type": "json_object"},
                )
            except groq.APIConnectionError as e:
                raise OracleUnavailable(f"Groq connection failed ({model}): {e}") from e
            except groq.APIStatusError as e:
                transient = e.status_code in _RETRYABLE_STATUS or e.status_code >= 500
                if not (transient or _model_unavailable(e)):
                    raise OracleUnavailable(
                        f"Groq returned HTTP {e.status_code} ({model}): {e}", retryable=False
                    ) from e
                log.warning("Groq model %s failed with HTTP %d; trying next model", model, e.status_code)
                errors.append(f"{model}: HTTP {e.status_code}")
                retryable = retryable or transient
                continue

            if not response.choices:
                raise OracleResponseInvalid("Model returned no choices")
            content = response.choices[0].message.content or ""
            log.debug("Groq %s replied with %d chars", model, len(content))
            return parse_json_object(content), model

        raise OracleUnavailable(f"All Groq models failed: {'; '.join(errors)}", retryable=retryable)


def _model_unavailable(error: groq.APIStatusError) -> bool:
    if error.status_code == 404:
        return True
    return error.status_code == 400 and "decommissioned" in str(error).lower()


def audit_block(model_id: str, prompt_version: str, prompt: str) -> dict:
    return {
        "prompt_version": prompt_version,
        "prompt_hash": hash_text(prompt),
        "model_id": model_id,
        "model_params": MODEL_PARAMS,
    }
