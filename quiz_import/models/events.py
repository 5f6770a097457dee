"""Events emitted by the batch import manager."""

from dataclasses import dataclass
from typing import Callable, Union

from .question import ImportResult


@dataclass(frozen=True)
class ImportProgress:
    progress: int  # percent, 0-100
    processed: int
    total: int
    message: str = ""


@dataclass(frozen=True)
class ImportComplete:
    result: ImportResult


@dataclass(frozen=True)
class ImportFailed:
    message: str


ImportEvent = Union[ImportProgress, ImportComplete, ImportFailed]
EventCallback = Callable[[ImportEvent], None]
