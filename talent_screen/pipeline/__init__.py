"""Document pipeline: fetch → text → facts → oracle-ready text."""

from talent_screen.pipeline.extract import DocumentExtractor, is_url
from talent_screen.pipeline.fetch import DocumentFetcher
from talent_screen.pipeline.formatting import (
    consolidate_questionnaire,
    format_job_for_analysis,
    format_resume_for_analysis,
    has_questionnaire,
)
from talent_screen.pipeline.pdf_parser import document_to_text
from talent_screen.pipeline.segment import segment_raw_text

__all__ = [
    "DocumentExtractor",
    "DocumentFetcher",
    "is_url",
    "document_to_text",
    "segment_raw_text",
    "consolidate_questionnaire",
    "format_job_for_analysis",
    "format_resume_for_analysis",
    "has_questionnaire",
]
