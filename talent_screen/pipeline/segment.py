"""Raw-text segmentation used when no extraction oracle is available."""

import re

from talent_screen.models import CandidateFacts, ContactInfo
from talent_screen.utils import normalize_whitespace

EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
PHONE_RE = re.compile(r"(?:\+\d{1,3}[\s.-]?)?(?:\(\d{3}\)|\d{3})[\s.-]?\d{3}[\s.-]?\d{4}")
MAX_NAME_CHARS = 60


def _guess_name(lines: list[str]) -> str:
    for line in lines[:3]:
        if len(line) > MAX_NAME_CHARS or EMAIL_RE.search(line) or any(ch.isdigit() for ch in line):
            continue
        if len(line.split()) <= 5:
            return line
    return ""


def segment_raw_text(text: str) -> CandidateFacts:
    """
    Coarse facts from plain text: a name guess, e-mail and phone by pattern,
    and the whole text as summary. Structured lists stay empty.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    email = EMAIL_RE.search(text)
    phone = PHONE_RE.search(text)
    return CandidateFacts(
        name=_guess_name(lines),
        contact=ContactInfo(
            email=email.group(0) if email else "",
            phone=phone.group(0).strip() if phone else "",
        ),
        summary=normalize_whitespace(text),
        raw_text=text,
    )
