"""Plain-text extraction from uploaded documents."""

import io
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = (".txt", ".md", ".json")
SUPPORTED_SUFFIXES = TEXT_SUFFIXES + (".docx", ".doc", ".pdf")
TEXT_ENCODINGS = ("utf-8-sig", "gb18030")


@dataclass(frozen=True)
class ExtractedDocument:
    """Text pulled out of a document plus anything that went wrong."""
    text: str
    format: str
    filename: Optional[str] = None
    diagnostics: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return bool(self.text.strip())

    @property
    def is_json(self) -> bool:
        return looks_like_json(self.text)


def looks_like_json(text: str) -> bool:
    return text.lstrip().startswith(("[", "{"))


def read_pdf_text(source: Union[str, Path, bytes]) -> str:
    """
    Extract the text layer of a PDF.

    Args:
        source: Path to the PDF or its raw bytes.

    Returns:
        Page texts joined by blank lines; empty for scanned PDFs.
    """
    try:
        import pypdf
    except ImportError:
        raise ImportError(
            "pypdf is required for PDF parsing. Install with: pip install pypdf"
        )

    stream = io.BytesIO(source) if isinstance(source, bytes) else source
    reader = pypdf.PdfReader(stream)
    text_parts = []

    for page in reader.pages:
        page_text = page.extract_text()
        if page_text:
            text_parts.append(page_text)

    return "\n\n".join(text_parts)


def decode_text(data: bytes) -> tuple[str, str]:
    """Decode bytes with the first encoding that works; returns (text, encoding)."""
    for encoding in TEXT_ENCODINGS:
        try:
            return data.decode(encoding), encoding
        except UnicodeDecodeError:
            continue
    return data.decode("latin-1"), "latin-1"


class DocumentExtractor:
    """
    Best-effort text extraction for .txt/.md/.json, .docx, .doc and .pdf.

    `extract` never raises on malformed input; it returns empty text and a
    diagnostic instead. A missing optional library still raises ImportError.
    """

    def __init__(self, strict: bool = False):
        """
        Args:
            strict: Raise ValueError for unsupported suffixes instead of
                trying to decode them as text.
        """
        self.strict = strict

    def extract(
        self,
        source: Union[str, Path, bytes],
        filename: Optional[str] = None,
    ) -> ExtractedDocument:
        """
        Extract plain text from a file path or raw bytes.

        Args:
            source: Path to the document, or its content.
            filename: Name used to pick the format when `source` is bytes.

        Returns:
            ExtractedDocument; `text` is empty when nothing could be read.
        """
        if isinstance(source, bytes):
            data = source
            name = filename or ""
        else:
            path = Path(source)
            name = filename or path.name
            try:
                data = path.read_bytes()
            except OSError as e:
                logger.warning("Could not read %s: %s", path, e)
                return ExtractedDocument("", "unknown", name, (f"无法读取文件: {e}",))

        suffix = Path(name).suffix.lower()
        if suffix not in SUPPORTED_SUFFIXES:
            if self.strict:
                raise ValueError(f"Unsupported document type: {suffix or name}")
            suffix = ".txt"

        fmt = suffix.lstrip(".")
        diagnostics = []
        try:
            if suffix in TEXT_SUFFIXES:
                text, encoding = decode_text(data)
                if encoding != "utf-8-sig":
                    diagnostics.append(f"使用{encoding}编码读取")
            elif suffix == ".docx":
                text = self._extract_docx(data)
            elif suffix == ".doc":
                text = self._extract_doc(data)
                diagnostics.append(".doc格式仅支持尽力提取，建议另存为.docx")
            else:
                text = read_pdf_text(data)
                if not text.strip():
                    diagnostics.append("PDF没有文本层，可能需要OCR")
        except ImportError:
            raise
        except Exception as e:
            logger.warning("Error extracting %s: %s", name or fmt, e)
            return ExtractedDocument("", fmt, name, (f"文档解析失败: {e}",))

        text = text.replace("\r\n", "\n").replace("\r", "\n")
        logger.info("Extracted %d characters from %s", len(text), name or fmt)
        return ExtractedDocument(text, fmt, name, tuple(diagnostics))

    @staticmethod
    def _extract_docx(data: bytes) -> str:
        try:
            import docx
        except ImportError:
            raise ImportError(
                "python-docx is required for .docx files. Install with: pip install python-docx"
            )

        document = docx.Document(io.BytesIO(data))
        lines = [paragraph.text for paragraph in document.paragraphs]
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    lines.append("\t".join(cells))
        return "\n".join(lines)

    @staticmethod
    def _extract_doc(data: bytes) -> str:
        """Recover readable runs from a legacy binary .doc (UTF-16LE text stream)."""
        text = data.decode("utf-16-le", errors="ignore")
        runs = re.findall(r"[\u4e00-\u9fff\u3000-\u303f\uff00-\uffefA-Za-z0-9 \t.,:;?!()\[\]\-+=/%\r\n]{4,}", text)
        if not runs:
            text = data.decode("latin-1")
            runs = re.findall(r"[\x20-\x7e\r\n\t]{4,}", text)
        lines = [run.strip() for run in runs if run.strip()]
        return "\n".join(lines)
