"""Render jobs, résumés and questionnaires as oracle-ready text."""

from talent_screen.models import Application, CandidateFacts, Job

# Raw text appended after structured sections; structured facts carry the rest
RAW_TEXT_PREVIEW_CHARS = 2000
# Fallback facts have no structure, so the raw text is the résumé
RAW_ONLY_MAX_CHARS = 12000


def format_job_for_analysis(job: Job) -> str:
    parts = [job.description.strip()]
    if job.requirements:
        parts.append("Requirements:\n" + "\n".join(f"- {r}" for r in job.requirements))
    if job.responsibilities:
        parts.append("Responsibilities:\n" + "\n".join(f"- {r}" for r in job.responsibilities))
    return "\n\n".join(p for p in parts if p)


def format_resume_for_analysis(facts: CandidateFacts) -> str:
    if not facts.is_structured:
        return (facts.raw_text or facts.summary)[:RAW_ONLY_MAX_CHARS]

    sections = []
    if facts.name:
        sections.append(f"Name: {facts.name}")
    contact = ", ".join(v for v in (facts.contact.email, facts.contact.phone, facts.contact.location) if v)
    if contact:
        sections.append(f"Contact: {contact}")
    if facts.summary:
        sections.append(f"Summary: {facts.summary}")
    if facts.skills:
        sections.append(f"Skills: {', '.join(facts.skills)}")
    if facts.experience:
        lines = []
        for e in facts.experience:
            line = f"- {e.title} at {e.employer}" + (f" ({e.duration})" if e.duration else "")
            if e.description:
                line += f": {e.description}"
            lines.append(line)
        sections.append("Experience:\n" + "\n".join(lines))
    if facts.education:
        lines = [
            f"- {e.degree} from {e.institution}" + (f" ({e.year})" if e.year else "") for e in facts.education
        ]
        sections.append("Education:\n" + "\n".join(lines))
    if facts.certifications:
        sections.append(f"Certifications: {', '.join(facts.certifications)}")
    if facts.raw_text:
        sections.append(f"Raw text:\n{facts.raw_text[:RAW_TEXT_PREVIEW_CHARS]}")
    return "\n\n".join(sections)


def has_questionnaire(application: Application) -> bool:
    """Cover letter or at least one non-empty answer. Links alone do not count."""
    return bool(application.cover_letter.strip()) or any(a.strip() for _, a in application.answers)


def consolidate_questionnaire(application: Application) -> str:
    """Cover letter, answered questions and links as one text block; empty when nothing was answered."""
    if not has_questionnaire(application):
        return ""
    parts = []
    if application.cover_letter.strip():
        parts.append(f"Cover letter:\n{application.cover_letter.strip()}")
    answered = [(q, a) for q, a in application.answers if a.strip()]
    if answered:
        parts.append("Answers:\n" + "\n\n".join(f"Q: {q}\nA: {a.strip()}" for q, a in answered))
    links = [(label, url) for label, url in application.links if url]
    if links:
        parts.append("Links:\n" + "\n".join(f"- {label}: {url}" for label, url in links))
    return "\n\n".join(parts)
