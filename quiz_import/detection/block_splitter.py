"""Split cleaned text into question-block candidates."""

import re

# Ordered separator families; the first that yields more than one part wins
SEPARATOR_PATTERNS = [
    re.compile(r"(?:^|\n)[ \t]*\d+[ \t]*[.、．](?!\d)[ \t]*"),
    re.compile(r"(?:^|\n)[ \t]*[一二三四五六七八九十]+[ \t]*[、.．][ \t]*"),
    re.compile(r"(?:^|\n)[ \t]*[（(]\d+[）)][ \t]*"),
    re.compile(r"(?:^|\n)[ \t]*第[ \t]*\d+[ \t]*题[ \t]*[：:.、．]?[ \t]*"),
]


def split_blocks(text: str, patterns: list = None) -> list[str]:
    """
    Split text into question blocks.

    The leading part before the first separator is kept unless it is blank.
    Text with no separator at all comes back as a single block.

    Args:
        text: Cleaned question text.
        patterns: Optional separator list overriding SEPARATOR_PATTERNS.

    Returns:
        Block strings with surrounding whitespace removed.
    """
    if not text or not text.strip():
        return []

    for pattern in patterns or SEPARATOR_PATTERNS:
        parts = pattern.split(text)
        if len(parts) > 1:
            head, rest = parts[0], parts[1:]
            blocks = [part.strip() for part in rest if part.strip()]
            if head.strip():
                blocks.insert(0, head.strip())
            return blocks

    return [text.strip()]
