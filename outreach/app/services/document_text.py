"""
Plain-text extraction from uploaded documents.
"""
from pathlib import Path

import pdfplumber
from docx import Document as DocxDocument

from outreach.app.core.config import EXTRACTED_TEXT_MAX_CHARS
from outreach.app.core.logging_config import get_logger
from outreach.app.utils.text import collapse_whitespace

logger = get_logger("services.document_text")

PDF_MIME = "application/pdf"
TEXT_MIME = "text/plain"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DOC_MIME = "application/msword"


class DocumentTextError(Exception):
    pass


def extract_text_from_pdf(file_path: str | Path) -> str:
    """Extract raw text from PDF using pdfplumber."""
    text_parts = []
    with pdfplumber.open(file_path) as pdf:
        for page in pdf.pages:
            page_text = page.extract_text()
            if page_text:
                text_parts.append(page_text)
    return "\n".join(text_parts)


def extract_text_from_docx(file_path: str | Path) -> str:
    """Paragraph and table cell text from a .docx file."""
    doc = DocxDocument(str(file_path))
    parts = [p.text for p in doc.paragraphs if p.text]
    for table in doc.tables:
        for row in table.rows:
            parts.extend(cell.text for cell in row.cells if cell.text)
    return "\n".join(parts)


def extract_document_text(file_path: Path, mime_type: str) -> str:
    """
    Extract text by MIME type, collapse whitespace and cap the length.
    Raises DocumentTextError when the type is unsupported or nothing readable is found.
    """
    if mime_type == PDF_MIME:
        try:
            raw = extract_text_from_pdf(file_path)
        except Exception as e:
            logger.warning("PDF extraction failed path=%s error=%s", file_path.name, e)
            raise DocumentTextError("Could not read PDF file") from e
    elif mime_type == TEXT_MIME:
        raw = file_path.read_bytes().decode("utf-8", errors="replace")
    elif mime_type == DOCX_MIME:
        try:
            raw = extract_text_from_docx(file_path)
        except Exception as e:
            logger.warning("DOCX extraction failed path=%s error=%s", file_path.name, e)
            raise DocumentTextError("Could not read Word document") from e
    elif mime_type == DOC_MIME:
        # Binary Word 97-2003 format
        raise DocumentTextError("Text extraction from .doc files is not supported. Please upload a PDF or DOCX file.")
    else:
        raise DocumentTextError("Unsupported file type for text extraction")

    text = collapse_whitespace(raw)[:EXTRACTED_TEXT_MAX_CHARS]
    if not text:
        raise DocumentTextError("No text could be extracted from this document")
    return text
