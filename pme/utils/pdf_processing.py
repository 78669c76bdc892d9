"""
PDF inspection helpers.

page_count: quick page count used when reporting a finished build.
extract_text: plain text of a rendered PDF, used to check what was rendered.
"""

from io import BytesIO
from pathlib import Path
from typing import Optional, Union

import pdfplumber
from PyPDF2 import PdfReader

PDFSource = Union[str, Path, bytes]


def _open_source(source: PDFSource):
    return BytesIO(source) if isinstance(source, bytes) else str(source)


def page_count(source: PDFSource) -> Optional[int]:
    """Get page count from a PDF path or PDF bytes, or None if unreadable."""
    try:
        reader = PdfReader(_open_source(source))
        return len(reader.pages)
    except Exception:
        return None


def extract_text(source: PDFSource, page: Optional[int] = None) -> str:
    """
    Extract the text of a PDF.

    Args:
        source: PDF path or PDF bytes
        page: 1-indexed page to extract (None = all pages, joined by newlines)

    Returns:
        Extracted text with surrounding whitespace stripped
    """
    with pdfplumber.open(_open_source(source)) as pdf:
        pages = pdf.pages if page is None else [pdf.pages[page - 1]]
        text = "\n".join((p.extract_text() or "") for p in pages)

    return text.strip()
