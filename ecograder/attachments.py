"""
Text extraction for files attached to submissions.

Supports plain text (.txt, .md), PDF (.pdf, via PyMuPDF) and Word (.docx,
via python-docx). The extracted text is what gets graded.
"""

import logging
from pathlib import Path
from typing import Callable

import fitz  # PyMuPDF
from docx import Document
from docx.opc.exceptions import PackageNotFoundError

from ecograder.models import ExtractedDocument

logger = logging.getLogger(__name__)

# Encodings to try in order of preference
TEXT_ENCODINGS = ("utf-8", "utf-8-sig", "latin-1", "cp1252")


class ExtractionError(Exception):
    """Raised when text cannot be extracted from an attachment."""

    def __init__(self, message: str, file_path: str | Path, cause: Exception | None = None):
        self.file_path = str(file_path)
        self.cause = cause
        super().__init__(f"Failed to extract '{file_path}': {message}")


def _read_text(file_path: Path) -> str:
    last_error: Exception | None = None
    for encoding in TEXT_ENCODINGS:
        try:
            return file_path.read_text(encoding=encoding)
        except UnicodeDecodeError as e:
            last_error = e
    raise ExtractionError(
        f"Could not decode file with any supported encoding: {TEXT_ENCODINGS}",
        file_path,
        cause=last_error,
    )


def _read_pdf(file_path: Path) -> str:
    try:
        with fitz.open(file_path) as doc:
            pages = [page.get_text("text") for page in doc]
    except (fitz.FileDataError, fitz.EmptyFileError) as e:
        raise ExtractionError("PDF file is corrupted or empty", file_path, cause=e) from e

    text = "\n\n".join(p for p in pages if p.strip())
    if not text:
        # image-only PDFs have no text layer
        raise ExtractionError("No text could be extracted; the PDF may be scanned", file_path)
    return text


def _read_docx(file_path: Path) -> str:
    try:
        doc = Document(str(file_path))
    except PackageNotFoundError as e:
        raise ExtractionError("File is not a valid .docx document", file_path, cause=e) from e

    parts = [para.text for para in doc.paragraphs if para.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells]
            if any(cells):
                parts.append(" | ".join(cells))
    return "\n\n".join(parts)


READERS: dict[str, Callable[[Path], str]] = {
    ".txt": _read_text,
    ".md": _read_text,
    ".pdf": _read_pdf,
    ".docx": _read_docx,
}


def supported_extensions() -> tuple[str, ...]:
    return tuple(READERS)


def extract_text(file_path: str | Path) -> ExtractedDocument:
    """
    Extract the text of an attachment.

    Args:
        file_path: Path to the file.

    Returns:
        ExtractedDocument with the text and source metadata.

    Raises:
        ExtractionError: If the file is missing, unsupported, unreadable
            or contains no text.
    """
    path = Path(file_path)
    if not path.is_file():
        raise ExtractionError("File does not exist", path)

    reader = READERS.get(path.suffix.lower())
    if reader is None:
        raise ExtractionError(
            f"Unsupported file format. Expected one of: {supported_extensions()}", path
        )

    content = reader(path)
    if not content.strip():
        raise ExtractionError("File contains no extractable text", path)

    logger.debug("Extracted %d characters from %s", len(content), path.name)
    return ExtractedDocument(
        content=content,
        source_path=str(path.resolve()),
        file_extension=path.suffix.lower(),
    )
