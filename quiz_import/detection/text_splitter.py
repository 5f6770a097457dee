"""Split very large question texts into processable chunks."""

import math
import re
from dataclasses import dataclass


@dataclass(frozen=True)
class TextChunk:
    content: str
    index: int
    total_chunks: int
    estimated_questions: int


_COUNT_PATTERNS = [
    re.compile(r"\d+[.、]"),
    re.compile(r"第\d+题"),
    re.compile(r"\(\d+\)"),
    re.compile(r"【\d+】"),
]

_BOUNDARY_PATTERNS = [
    re.compile(r"\n\s*\d+[.、]"),
    re.compile(r"\n\s*第\d+题"),
    re.compile(r"\n\s*\(\d+\)"),
    re.compile(r"\n\s*【\d+】"),
]


class TextSplitter:
    """
    Splits text into chunks no longer than max_chunk_size.

    Cut points prefer question boundaries, then paragraph breaks, then line
    breaks, searched in the last fifth of the window. Every chunk after the
    first repeats the final `overlap` characters of its predecessor.
    """

    def __init__(self, max_chunk_size: int = 8000, overlap: int = 200):
        if max_chunk_size <= 0:
            raise ValueError("max_chunk_size must be positive")
        if overlap < 0 or overlap >= max_chunk_size:
            raise ValueError("overlap must be in [0, max_chunk_size)")
        self.max_chunk_size = max_chunk_size
        self.overlap = overlap

    def needs_splitting(self, text: str) -> bool:
        return len(text) > self.max_chunk_size

    @staticmethod
    def estimate_question_count(text: str) -> int:
        """Largest count of any numbering family, else one per 500 characters."""
        count = max(len(p.findall(text)) for p in _COUNT_PATTERNS)
        if count:
            return count
        return math.ceil(len(text) / 500)

    def split(self, text: str) -> list[TextChunk]:
        """Split text, keeping questions whole where a boundary is available."""
        if len(text) <= self.max_chunk_size:
            return [TextChunk(text, 0, 1, self.estimate_question_count(text))]

        boundaries = self._find_boundaries(text)
        pieces = []
        position = 0
        while position < len(text):
            end = min(position + self.max_chunk_size - (self.overlap if pieces else 0), len(text))
            if end < len(text):
                floor = position + int(self.max_chunk_size * 0.8) - (self.overlap if pieces else 0)
                end = self._nearest_boundary(boundaries, text, end, max(floor, position + 1))

            start = max(0, position - self.overlap) if pieces else position
            pieces.append(text[start:end])
            position = end

        return [
            TextChunk(content, i, len(pieces), self.estimate_question_count(content))
            for i, content in enumerate(pieces)
        ]

    @staticmethod
    def _find_boundaries(text: str) -> list[int]:
        points = set()
        for pattern in _BOUNDARY_PATTERNS:
            points.update(match.start() for match in pattern.finditer(text))
        return sorted(points)

    @staticmethod
    def _nearest_boundary(boundaries: list[int], text: str, target: int, floor: int) -> int:
        for point in reversed(boundaries):
            if floor <= point <= target:
                return point

        for separator in ("\n\n", "\n"):
            point = text.rfind(separator, floor, target)
            if point != -1:
                return point

        return target
