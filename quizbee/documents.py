# quizbee/documents.py
import io
import logging
from typing import Optional

from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from quizbee.errors import DocumentReadError, DocumentTooLarge, UnsupportedDocument
from quizbee.segmenter import MAX_SOURCE_MB

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


def check_document(size_bytes: int, content_type: Optional[str] = None, max_mb: float = MAX_SOURCE_MB) -> None:
    """Reject uploads that are too big or not PDFs before any parsing happens."""
    mb = size_bytes / (1024 * 1024)
    if mb > max_mb:
        raise DocumentTooLarge(f"PDF is too large ({mb:.1f}MB). Max {max_mb:g}MB.")
    if content_type and content_type != PDF_CONTENT_TYPE:
        raise UnsupportedDocument("Only PDF files are supported.")


def read_pdf_text(data: bytes, content_type: Optional[str] = None, max_mb: float = MAX_SOURCE_MB) -> str:
    """Extract plain text from an uploaded PDF, page by page."""
    check_document(len(data), content_type, max_mb)
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PdfReadError, ValueError, KeyError) as e:
        logger.error("Failed to read PDF (%d bytes)", len(data), exc_info=True)
        raise DocumentReadError(f"Failed to read PDF: {e}") from e

    logger.info("Extracted %d pages of text from PDF", len(pages))
    return "\n".join(pages)
