"""
Document extractor for PDF, DOCX, DOC, CSV and plain-text uploads.

Uses PyPDF2 for page-by-page PDF text extraction and python-docx for
Word documents. Legacy ``.doc`` files are converted to DOCX with a
headless LibreOffice run before parsing.
"""

import asyncio
import csv
import io
import json
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Optional

try:
    import PyPDF2
except ImportError:
    raise ImportError("PyPDF2 is required for PDF processing. Install with: pip install PyPDF2>=3.0.0")

try:
    from docx import Document
except ImportError:
    raise ImportError("python-docx is required for DOCX processing. Install with: pip install python-docx>=0.8.11")

from .base import (
    SourceExtractor, ContentExtractionError, EmptyContentError, UnsupportedFormatError
)
from ..config import ProcessingConfig
from ..models import SourceKind, split_extension


logger = logging.getLogger(__name__)


class DocumentExtractor(SourceExtractor):
    """
    Extracts plain text from uploaded documents.

    Dispatches on the lower-cased extension of the name the user uploaded
    the file under; the stored upload usually has no extension of its own.
    """

    source_kind = SourceKind.DOCUMENT

    def __init__(self, config: ProcessingConfig):
        self.config = config
        self._parsers: Dict[str, Callable[[bytes], str]] = {
            'pdf': self._parse_pdf,
            'docx': self._parse_docx,
            'csv': self._parse_csv,
            'txt': self._parse_txt,
        }

    def get_supported_formats(self):
        return [fmt for fmt in self.config.document_formats if fmt in self._parsers or fmt == 'doc']

    async def _extract(self, file_path: str, original_name: Optional[str] = None) -> str:
        _, ext = split_extension(original_name or Path(file_path).name)

        max_bytes = self.config.max_file_size_mb * 1024 * 1024
        if Path(file_path).stat().st_size > max_bytes:
            raise ContentExtractionError(
                f"File too large. Maximum size: {self.config.max_file_size_mb}MB",
                file_path=file_path,
            )

        data = await asyncio.to_thread(Path(file_path).read_bytes)
        return await self.parse_bytes(data, ext)

    async def parse_bytes(self, data: bytes, ext: str) -> str:
        """
        Parse raw document bytes of the given extension into text.

        Raises:
            UnsupportedFormatError: If the extension is not handled
            EmptyContentError: If the document holds no text
        """
        ext = (ext or "").lower().lstrip('.')
        if ext not in self.config.document_formats:
            raise UnsupportedFormatError(f"Unsupported file type: {ext or 'unknown'}")

        if ext == 'doc':
            text = await self._parse_doc(data)
        elif ext in self._parsers:
            text = await asyncio.to_thread(self._parsers[ext], data)
        else:
            raise UnsupportedFormatError(f"Unsupported file type: {ext}")

        if not text or not text.strip():
            raise EmptyContentError(f"No text content found in {ext} document")

        logger.info(f"Extracted {len(text)} characters from {ext} document")
        return text

    def _parse_pdf(self, data: bytes) -> str:
        try:
            reader = PyPDF2.PdfReader(io.BytesIO(data))
            if reader.is_encrypted:
                raise ContentExtractionError("PDF is encrypted and cannot be processed")

            pages = []
            for page_num, page in enumerate(reader.pages, 1):
                page_text = page.extract_text() or ""
                if page_text.strip():
                    pages.append(page_text)
                else:
                    logger.debug(f"PDF page {page_num} has no extractable text")
            return "\n\n".join(pages)
        except ContentExtractionError:
            raise
        except Exception as e:
            raise ContentExtractionError(f"Failed to extract content from PDF: {e}", cause=e)

    def _parse_docx(self, data: bytes) -> str:
        try:
            doc = Document(io.BytesIO(data))
        except Exception as e:
            raise ContentExtractionError(f"Cannot read DOCX file: {e}", cause=e)

        paragraphs = {p._element: p for p in doc.paragraphs}
        tables = {t._element: t for t in doc.tables}
        blocks = []

        # Walk the body so paragraphs and tables keep document order
        for element in doc.element.body:
            if element in paragraphs:
                text = paragraphs[element].text.strip()
                if text:
                    blocks.append(text)
            elif element in tables:
                rows = []
                for row in tables[element].rows:
                    cells = [cell.text.strip() for cell in row.cells]
                    if any(cells):
                        rows.append(" | ".join(cells))
                if rows:
                    blocks.append("\n".join(rows))

        return "\n\n".join(blocks)

    async def _parse_doc(self, data: bytes) -> str:
        binary = shutil.which(self.config.soffice_binary)
        if binary is None:
            raise ContentExtractionError(
                f"LibreOffice ({self.config.soffice_binary}) is required to read .doc files"
            )

        with tempfile.TemporaryDirectory(dir=self._temp_root()) as workdir:
            source = Path(workdir) / "document.doc"
            source.write_bytes(data)

            process = await asyncio.create_subprocess_exec(
                binary, "--headless", "--convert-to", "docx", "--outdir", workdir, str(source),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await process.communicate()

            converted = Path(workdir) / "document.docx"
            if process.returncode != 0 or not converted.exists():
                raise ContentExtractionError(
                    f"Failed to convert .doc file: {stderr.decode(errors='replace').strip()}"
                )

            return await asyncio.to_thread(self._parse_docx, converted.read_bytes())

    def _parse_csv(self, data: bytes) -> str:
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ContentExtractionError(f"CSV file is not valid UTF-8: {e}", cause=e)

        reader = csv.DictReader(io.StringIO(text))
        return "\n".join(json.dumps(row, ensure_ascii=False) for row in reader)

    def _parse_txt(self, data: bytes) -> str:
        return data.decode("utf-8", errors="replace")

    def _temp_root(self) -> Optional[str]:
        root = Path(self.config.temp_directory)
        return str(root) if root.is_dir() else None
