"""
Unit tests for attachment text extraction.

PDF and Word fixtures are generated on the fly with PyMuPDF and
python-docx.
"""

from pathlib import Path

import fitz
import pytest
from docx import Document

from ecograder.attachments import ExtractionError, extract_text, supported_extensions


@pytest.fixture
def sample_pdf(temp_dir: Path) -> Path:
    path = temp_dir / "answer.pdf"
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), "Trees absorb carbon dioxide.")
    doc.save(str(path))
    doc.close()
    return path


@pytest.fixture
def sample_docx(temp_dir: Path) -> Path:
    path = temp_dir / "answer.docx"
    doc = Document()
    doc.add_paragraph("Solar panels turn sunlight into electricity.")
    table = doc.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "Source"
    table.rows[0].cells[1].text = "Solar"
    doc.save(str(path))
    return path


class TestExtractText:
    """Tests for extract_text."""

    def test_markdown(self, sample_md_file: Path, sample_student_answer: str) -> None:
        """Test plain text files are read as-is."""
        doc = extract_text(sample_md_file)

        assert doc.content == sample_student_answer
        assert doc.file_extension == ".md"
        assert doc.character_count == len(sample_student_answer)

    def test_encoding_fallback(self, temp_dir: Path) -> None:
        """Test non-UTF-8 text still decodes."""
        path = temp_dir / "answer.txt"
        path.write_bytes("Café compost".encode("latin-1"))

        assert extract_text(path).content == "Café compost"

    def test_pdf(self, sample_pdf: Path) -> None:
        """Test PDF text is extracted."""
        assert "Trees absorb carbon dioxide." in extract_text(sample_pdf).content

    def test_docx_with_table(self, sample_docx: Path) -> None:
        """Test paragraphs and table rows are extracted."""
        content = extract_text(sample_docx).content

        assert "Solar panels turn sunlight into electricity." in content
        assert "Source | Solar" in content

    def test_missing_file(self, temp_dir: Path) -> None:
        with pytest.raises(ExtractionError, match="does not exist"):
            extract_text(temp_dir / "nope.txt")

    def test_unsupported_format(self, temp_dir: Path) -> None:
        """Test spreadsheets and other formats are rejected."""
        path = temp_dir / "marks.xlsx"
        path.write_bytes(b"not really a spreadsheet")

        with pytest.raises(ExtractionError, match="Unsupported file format"):
            extract_text(path)

    def test_empty_file(self, empty_file: Path) -> None:
        with pytest.raises(ExtractionError, match="no extractable text"):
            extract_text(empty_file)

    def test_corrupt_docx(self, temp_dir: Path) -> None:
        """Test a non-zip .docx is reported, not raised raw."""
        path = temp_dir / "broken.docx"
        path.write_bytes(b"plain bytes")

        with pytest.raises(ExtractionError, match="not a valid .docx"):
            extract_text(path)

    def test_supported_extensions(self) -> None:
        assert set(supported_extensions()) == {".txt", ".md", ".pdf", ".docx"}
