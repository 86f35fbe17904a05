"""Document-to-text conversion for résumés (PDF via pypdf, plain UTF-8 text)."""

from io import BytesIO

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from talent_screen.errors import EmptyDocument, UnsupportedFormat

PDF_MAGIC = b"%PDF"
ZIP_MAGIC = b"PK\x03\x04"
OLE_MAGIC = b"\xd0\xcf\x11\xe0"


def extract_text_from_pdf(data: bytes, artifact: str = "resume") -> str:
    """
    Extract text from PDF bytes.

    Note:
        Scanned PDFs (image-only) yield no text and therefore EmptyDocument.
        Use OCR (e.g., Tesseract) for scanned documents.
    """
    try:
        reader = PdfReader(BytesIO(data))
        text_parts = []
        for page in reader.pages:
            page_text = page.extract_text()
            if page_text:
                text_parts.append(page_text)
    except (PyPdfError, ValueError, KeyError, TypeError) as e:
        raise UnsupportedFormat(artifact, f"unreadable PDF ({e})") from e

    return "\n\n".join(text_parts).strip()


def _decode_text(data: bytes, artifact: str) -> str:
    if b"\x00" in data[:4096]:
        raise UnsupportedFormat(artifact, "binary content is not a supported document type")
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise UnsupportedFormat(artifact, "text documents must be UTF-8 encoded") from e


def document_to_text(data: bytes, artifact: str = "resume") -> str:
    """Convert a résumé document to plain text. Raises UnsupportedFormat or EmptyDocument."""
    if not data or not data.strip():
        raise EmptyDocument(artifact, "document is empty")

    head = data.lstrip()[:8]
    if head.startswith(PDF_MAGIC):
        text = extract_text_from_pdf(data, artifact)
    elif data.startswith(ZIP_MAGIC):
        raise UnsupportedFormat(artifact, "DOCX/ZIP documents are not supported; upload a PDF or plain text")
    elif data.startswith(OLE_MAGIC):
        raise UnsupportedFormat(artifact, "legacy Word documents are not supported; upload a PDF or plain text")
    else:
        text = _decode_text(data, artifact).strip()

    if not text:
        raise EmptyDocument(artifact, "no extractable text (scanned or image-only document?)")
    return text
