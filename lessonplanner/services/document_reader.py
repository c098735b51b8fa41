# services/document_reader.py
"""Extract plain text from uploaded lesson files (txt, pdf, xlsx/xls, docx)."""
import io
import logging
from typing import Optional

from lessonplanner.core.errors import ExtractionError, UnsupportedInputError

logger = logging.getLogger(__name__)

EMPTY_FILE_MESSAGE = "فشل في قراءة الملف: الملف فارغ."

SPREADSHEET_EXTENSIONS = (".xlsx", ".xls")


def _detect_kind(filename: str, content_type: Optional[str]) -> Optional[str]:
    name = (filename or "").lower()
    ctype = (content_type or "").lower()
    if "pdf" in ctype or name.endswith(".pdf"):
        return "pdf"
    if "sheet" in ctype or "excel" in ctype or name.endswith(SPREADSHEET_EXTENSIONS):
        return "spreadsheet"
    if "wordprocessingml.document" in ctype or name.endswith(".docx"):
        return "docx"
    if ctype == "text/plain" or name.endswith(".txt"):
        return "text"
    return None


def _read_pdf(data: bytes) -> str:
    import fitz  # PyMuPDF

    doc = fitz.open(stream=data, filetype="pdf")
    try:
        return "".join(page.get_text() + "\n" for page in doc)
    finally:
        doc.close()


def _read_spreadsheet(data: bytes) -> str:
    import pandas as pd

    # first sheet only, rendered as CSV
    frame = pd.read_excel(io.BytesIO(data), sheet_name=0, header=None)
    return frame.to_csv(index=False, header=False)


def _read_docx(data: bytes) -> str:
    from docx import Document

    doc = Document(io.BytesIO(data))
    lines = [para.text for para in doc.paragraphs]
    for table in doc.tables:
        for row in table.rows:
            row_text = " | ".join(cell.text.strip() for cell in row.cells if cell.text.strip())
            if row_text:
                lines.append(row_text)
    return "\n".join(lines)


_READERS = {
    "pdf": _read_pdf,
    "spreadsheet": _read_spreadsheet,
    "docx": _read_docx,
    "text": lambda data: data.decode("utf-8"),
}


def read_file_as_text(filename: str, data: bytes, content_type: Optional[str] = None) -> str:
    """
    Return the text content of an uploaded file.

    Raises:
        UnsupportedInputError: the type is neither text, PDF, spreadsheet nor Word.
        ExtractionError: the file is empty or could not be parsed.
    """
    kind = _detect_kind(filename, content_type)
    if kind is None:
        raise UnsupportedInputError(filename)
    if not data:
        raise ExtractionError(EMPTY_FILE_MESSAGE)

    try:
        text = _READERS[kind](data)
    except Exception as e:
        logger.exception("Error processing file %s (%s)", filename, kind)
        raise ExtractionError() from e

    logger.info("Extracted %d characters from %s (%s)", len(text), filename, kind)
    return text
