"""
Document model: load and validate a source PDF, report page geometry,
and serialize the mutated document to the output buffer.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

import fitz  # PyMuPDF

from fieldstamp.config import Settings
from fieldstamp.pdf.errors import InputError

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"


@dataclass(frozen=True)
class PageGeometry:
    """Page size in points. index is 0-based."""
    index: int
    width: float
    height: float


def validate_source(data: bytes, max_bytes: Optional[int] = None) -> None:
    """
    Cheap checks before handing bytes to the parser.

    Raises:
        InputError: If the buffer is empty, too large or lacks the PDF header
    """
    if not data:
        raise InputError("Source document is empty", code="EMPTY_DOCUMENT")
    if max_bytes is not None and len(data) > max_bytes:
        raise InputError(
            f"Source document is {len(data)} bytes, limit is {max_bytes}",
            code="DOCUMENT_TOO_LARGE",
        )
    if not data.startswith(PDF_MAGIC):
        raise InputError("Invalid PDF file format: missing %PDF- header", code="INVALID_PDF_HEADER")


def load_document(data: bytes, max_bytes: Optional[int] = None) -> fitz.Document:
    """
    Open source bytes as a PDF document ready for overlay.

    Args:
        data: Raw PDF bytes
        max_bytes: Optional size limit

    Returns:
        Open PyMuPDF document, exclusively owned by the caller

    Raises:
        InputError: If the document is empty, malformed, encrypted or has no pages
    """
    validate_source(data, max_bytes)

    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as e:
        raise InputError(f"Invalid PDF file: {e}", code="UNREADABLE_DOCUMENT") from e

    encrypted = doc.needs_pass or bool((doc.metadata or {}).get("encryption"))
    if encrypted:
        doc.close()
        raise InputError("Encrypted PDF documents are not supported", code="ENCRYPTED_DOCUMENT")

    if doc.page_count == 0:
        doc.close()
        raise InputError("PDF document has no pages", code="NO_PAGES")

    return doc


def page_geometry(doc: fitz.Document) -> List[PageGeometry]:
    """Width and height of every page."""
    return [
        PageGeometry(index=page.number, width=page.rect.width, height=page.rect.height)
        for page in doc
    ]


def serialize_document(doc: fitz.Document, settings: Settings) -> bytes:
    """Write the document to a new byte buffer."""
    if settings.pdf_producer:
        metadata = doc.metadata or {}
        metadata["producer"] = settings.pdf_producer
        doc.set_metadata(metadata)

    data = doc.tobytes(garbage=settings.pdf_garbage_level, deflate=settings.pdf_deflate)
    logger.debug(f"Serialized {doc.page_count} page(s) to {len(data)} bytes")
    return data
