"""Record source: read input lines and split them into records."""

from __future__ import annotations

from pathlib import Path

from .models import Record

DELIMITER = ":"


def load_lines(path: Path) -> list[str]:
    """Read *path* and return its non-blank lines in file order."""
    content = path.read_text(encoding="utf-8")
    return [line for line in content.split("\n") if line.strip()]


def parse_record(line: str, index: int) -> Record | None:
    """Split *line* on ``:`` into a :class:`Record`.

    Returns ``None`` when the line has fewer than two non-empty parts.
    Everything after the second delimiter is ignored.
    """
    parts = [part.strip() for part in line.split(DELIMITER)]
    if len(parts) < 2 or not parts[0] or not parts[1]:
        return None
    return Record(line=line, index=index, text1=parts[0], text2=parts[1])
