"""Batch import of parsed questions."""

from .batch_import import (
    DEFAULT_BATCH_SIZE,
    BatchImportManager,
    BatchRunner,
    CooperativeRunner,
    QuestionImportError,
    WorkerRunner,
    build_stored_question,
)

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "BatchImportManager",
    "BatchRunner",
    "CooperativeRunner",
    "QuestionImportError",
    "WorkerRunner",
    "build_stored_question",
]
