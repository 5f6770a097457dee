"""Document collaborator: plain-text extraction from uploaded files."""

from .extractor import (
    SUPPORTED_SUFFIXES,
    DocumentExtractor,
    ExtractedDocument,
    looks_like_json,
    read_pdf_text,
)

__all__ = [
    "SUPPORTED_SUFFIXES",
    "DocumentExtractor",
    "ExtractedDocument",
    "looks_like_json",
    "read_pdf_text",
]
