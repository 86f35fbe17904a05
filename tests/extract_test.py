"""Document Extractor: format handling, URL fetching and graceful oracle degradation."""

import asyncio
from io import BytesIO

import httpx
import pytest
from pypdf import PdfWriter

from fakes import SAMPLE_RESUME, FakeExtractionOracle
from talent_screen.errors import EmptyDocument, FetchFailed, OracleResponseInvalid, OracleUnavailable, UnsupportedFormat
from talent_screen.models import FallbackExtraction, OracleExtraction
from talent_screen.pipeline.extract import DocumentExtractor
from talent_screen.pipeline.fetch import DocumentFetcher
from talent_screen.pipeline.segment import segment_raw_text


RESUME_URL = "https://files.example.com/resumes/jane.txt"


def _extract(extractor, source, **kw):
    return asyncio.run(extractor.extract(source, **kw))


def _blank_pdf() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    buf = BytesIO()
    writer.write(buf)
    return buf.getvalue()


def test_text_without_oracle_falls_back_to_segmentation():
    """No extraction oracle → raw segmentation, reported as method 'raw'."""
    outcome = _extract(DocumentExtractor(), SAMPLE_RESUME.encode("utf-8"))

    assert isinstance(outcome, FallbackExtraction)
    assert outcome.method == "raw"
    assert outcome.facts.name == "Jane Doe"
    assert outcome.facts.contact.email == "jane.doe@example.com"
    assert outcome.facts.contact.phone == "(555) 123-4567"
    assert outcome.facts.experience == ()
    assert "Senior Python engineer" in outcome.facts.summary


def test_oracle_extraction_used_when_available():
    """A working oracle produces structured facts with de-duplicated skills."""
    oracle = FakeExtractionOracle()
    outcome = _extract(DocumentExtractor(oracle=oracle), SAMPLE_RESUME.encode("utf-8"))

    assert isinstance(outcome, OracleExtraction)
    assert outcome.method == "oracle"
    assert outcome.facts.skills == ("Python", "AWS")
    assert oracle.calls == 1


@pytest.mark.parametrize("error", [OracleUnavailable("down"), OracleResponseInvalid("not json")])
def test_oracle_failure_degrades_to_raw(error):
    """Oracle errors never abort extraction."""
    extractor = DocumentExtractor(oracle=FakeExtractionOracle(error=error))
    outcome = _extract(extractor, SAMPLE_RESUME.encode("utf-8"))

    assert isinstance(outcome, FallbackExtraction)
    assert str(error) in outcome.reason


def test_use_oracle_false_skips_oracle():
    """use_oracle=False goes straight to raw segmentation."""
    oracle = FakeExtractionOracle()
    outcome = _extract(DocumentExtractor(oracle=oracle), SAMPLE_RESUME.encode("utf-8"), use_oracle=False)

    assert outcome.method == "raw"
    assert oracle.calls == 0


@pytest.mark.parametrize("data", [b"", b"   \n\t  "])
def test_empty_document(data):
    """Empty or whitespace-only documents → EmptyDocument."""
    with pytest.raises(EmptyDocument):
        _extract(DocumentExtractor(), data)


def test_pdf_without_text_is_empty():
    """A PDF with no extractable text (e.g. scanned) → EmptyDocument."""
    with pytest.raises(EmptyDocument):
        _extract(DocumentExtractor(), _blank_pdf())


def test_corrupt_pdf_is_unsupported():
    """A truncated PDF cannot be read → UnsupportedFormat."""
    with pytest.raises(UnsupportedFormat):
        _extract(DocumentExtractor(), b"%PDF-1.4\n1 0 obj garbage")


@pytest.mark.parametrize(
    "data",
    [b"PK\x03\x04word/document.xml", b"\xd0\xcf\x11\xe0legacy", b"\x89PNG\r\n\x1a\n\x00\x00\x00IHDR"],
)
def test_binary_formats_are_unsupported(data):
    """DOCX, legacy Word and images → UnsupportedFormat."""
    with pytest.raises(UnsupportedFormat):
        _extract(DocumentExtractor(), data)


def test_non_utf8_text_is_unsupported():
    """Text must be UTF-8."""
    with pytest.raises(UnsupportedFormat):
        _extract(DocumentExtractor(), "Résumé".encode("utf-16-le") + b"\xff\xfe\xfd")


def test_unsupported_source_type():
    """Plain strings that are not URLs are rejected rather than guessed at."""
    with pytest.raises(UnsupportedFormat):
        _extract(DocumentExtractor(), "not a url")


def test_url_is_fetched():
    """http(s) URLs are downloaded through the fetcher."""

    def handler(request):
        assert str(request.url) == RESUME_URL
        return httpx.Response(200, content=SAMPLE_RESUME.encode("utf-8"))

    fetcher = DocumentFetcher(transport=httpx.MockTransport(handler))
    outcome = _extract(DocumentExtractor(fetcher=fetcher), RESUME_URL)
    assert outcome.facts.name == "Jane Doe"


def test_url_http_error_is_fetch_failed():
    """HTTP 404 → FetchFailed naming the URL."""
    fetcher = DocumentFetcher(transport=httpx.MockTransport(lambda request: httpx.Response(404)))

    with pytest.raises(FetchFailed) as exc_info:
        _extract(DocumentExtractor(fetcher=fetcher), RESUME_URL)
    assert exc_info.value.artifact == RESUME_URL
    assert "404" in str(exc_info.value)


def test_url_network_error_is_fetch_failed():
    """Transport errors → FetchFailed."""

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    fetcher = DocumentFetcher(transport=httpx.MockTransport(handler))
    with pytest.raises(FetchFailed):
        _extract(DocumentExtractor(fetcher=fetcher), RESUME_URL)


def test_oversized_download_is_fetch_failed():
    """Bodies over the size cap are abandoned."""
    fetcher = DocumentFetcher(
        max_bytes=10, transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"x" * 100))
    )
    with pytest.raises(FetchFailed):
        _extract(DocumentExtractor(fetcher=fetcher), RESUME_URL)


def test_missing_path_is_fetch_failed(tmp_path):
    """Unreadable local files → FetchFailed."""
    with pytest.raises(FetchFailed):
        _extract(DocumentExtractor(), tmp_path / "missing.pdf")


def test_path_source_is_read(tmp_path):
    """Local paths are read from disk."""
    path = tmp_path / "resume.txt"
    path.write_text(SAMPLE_RESUME, encoding="utf-8")
    outcome = _extract(DocumentExtractor(), path)
    assert outcome.facts.contact.email == "jane.doe@example.com"


def test_segmentation_does_not_mistake_dates_for_phones():
    """Year ranges are not phone numbers."""
    facts = segment_raw_text("John Smith\nEngineer 2019-2023\n")
    assert facts.contact.phone == ""
    assert facts.name == "John Smith"
