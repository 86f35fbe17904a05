"""Document Extractor: résumé bytes or URL → CandidateFacts, degrading to raw segmentation."""

import asyncio
import logging
from pathlib import Path
from urllib.parse import urlparse

from talent_screen.errors import FetchFailed, OracleError, UnsupportedFormat
from talent_screen.models import ExtractionOutcome, FallbackExtraction, OracleExtraction
from talent_screen.oracle.base import ExtractionOracle, with_timeout
from talent_screen.pipeline.fetch import DocumentFetcher
from talent_screen.pipeline.pdf_parser import document_to_text
from talent_screen.pipeline.segment import segment_raw_text

log = logging.getLogger(__name__)

ResumeSource = bytes | bytearray | memoryview | str | Path


def is_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class DocumentExtractor:
    """
    Turns a résumé document into CandidateFacts.

    The extraction oracle is optional: when it is absent, disabled, times out or
    answers badly, the outcome is a FallbackExtraction built from raw text. Only
    document-level problems (format, fetch, emptiness) raise.
    """

    def __init__(
        self,
        oracle: ExtractionOracle | None = None,
        fetcher: DocumentFetcher | None = None,
        oracle_timeout: float | None = 60.0,
        max_document_bytes: int = 16 * 1024 * 1024,
    ):
        self._oracle = oracle
        self._fetcher = fetcher or DocumentFetcher(max_bytes=max_document_bytes)
        self._oracle_timeout = oracle_timeout
        self._max_bytes = max_document_bytes

    async def load(self, source: ResumeSource) -> tuple[bytes, str]:
        """Resolve a source to (bytes, artifact name)."""
        if isinstance(source, (bytes, bytearray, memoryview)):
            data = bytes(source)
            artifact = "resume"
        elif isinstance(source, Path):
            artifact = str(source)
            try:
                data = await asyncio.to_thread(source.read_bytes)
            except OSError as e:
                raise FetchFailed(artifact, f"cannot read file ({e.strerror or e})") from e
        elif isinstance(source, str) and is_url(source):
            artifact = source
            data = await self._fetcher.fetch(source)
        else:
            raise UnsupportedFormat(
                "resume", f"expected document bytes, a path or an http(s) URL, got {type(source).__name__}"
            )
        if len(data) > self._max_bytes:
            raise UnsupportedFormat(artifact, f"document exceeds {self._max_bytes} bytes")
        return data, artifact

    async def extract(self, source: ResumeSource, use_oracle: bool = True) -> ExtractionOutcome:
        data, artifact = await self.load(source)
        # pypdf is CPU-bound; keep the event loop free
        text = await asyncio.to_thread(document_to_text, data, artifact)

        if not use_oracle:
            return FallbackExtraction(segment_raw_text(text), reason="oracle not requested")
        if self._oracle is None:
            return FallbackExtraction(segment_raw_text(text), reason="no extraction oracle configured")

        try:
            facts = await with_timeout(self._oracle.extract(text), self._oracle_timeout, "extraction")
        except OracleError as e:
            log.warning("Extraction oracle failed for %s, using raw segmentation: %s", artifact, e)
            return FallbackExtraction(segment_raw_text(text), reason=str(e))

        log.info("Extracted %s with oracle", artifact)
        return OracleExtraction(facts)
