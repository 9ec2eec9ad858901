import io

import pytest
from PyPDF2 import PdfWriter

from quizbee.documents import check_document, read_pdf_text
from quizbee.errors import DocumentReadError, DocumentTooLarge, UnsupportedDocument


def blank_pdf():
    writer = PdfWriter()
    writer.add_blank_page(width=72, height=72)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


def test_oversized_document_is_rejected():
    with pytest.raises(DocumentTooLarge, match="PDF is too large"):
        check_document(30 * 1024 * 1024, "application/pdf")


def test_non_pdf_is_rejected():
    with pytest.raises(UnsupportedDocument, match="Only PDF files are supported."):
        read_pdf_text(b"hello", content_type="text/plain")


def test_garbage_bytes_are_a_read_error():
    with pytest.raises(DocumentReadError):
        read_pdf_text(b"definitely not a pdf", content_type="application/pdf")


def test_reads_pdf_pages():
    assert read_pdf_text(blank_pdf()).strip() == ""
