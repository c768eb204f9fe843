"""
Result Summarizer

Turns an on-disk output artifact into a size-bounded summary: small
results are returned whole, large ones as a preview plus a pointer to the
artifact. Artifacts are only ever streamed, never loaded whole.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

INLINE_THRESHOLD = 100
PREVIEW_LINES = 50
MAX_PREVIEW_BYTES = 64 * 1024
CHUNK_SIZE = 64 * 1024

RETRIEVAL_NOTE = "Use read_file with this path to view the complete results"

PathLike = Union[str, Path]


@dataclass
class ResultSummary:
    """Bounded view over an output artifact."""

    item_count: int
    inline: bool
    preview_text: str
    artifact_reference: str
    remaining_items: int = 0

    @property
    def retrieval_note(self) -> str:
        if self.inline:
            return ""
        return f"Full results: {self.artifact_reference}\n{RETRIEVAL_NOTE}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "item_count": self.item_count,
            "inline": self.inline,
            "preview_text": self.preview_text,
            "artifact_reference": self.artifact_reference,
            "remaining_items": self.remaining_items,
        }


def count_separators(path: PathLike, separator: bytes = b"\n", chunk_size: int = CHUNK_SIZE) -> int:
    """
    Count occurrences of a one-byte separator by streaming the file.

    A missing artifact counts as zero.
    """
    total = 0
    try:
        with open(path, "rb") as f:
            while True:
                chunk = f.read(chunk_size)
                if not chunk:
                    break
                total += chunk.count(separator)
    except FileNotFoundError:
        logger.warning(f"Artifact missing while counting: {path}")
        return 0
    return total


def count_lines(path: PathLike, chunk_size: int = CHUNK_SIZE) -> int:
    """Count lines, including an unterminated final line."""
    total = 0
    last = b""
    try:
        with open(path, "rb") as f:
            while True:
                chunk = f.read(chunk_size)
                if not chunk:
                    break
                total += chunk.count(b"\n")
                last = chunk[-1:]
    except FileNotFoundError:
        logger.warning(f"Artifact missing while counting: {path}")
        return 0
    if last and last != b"\n":
        total += 1
    return total


def read_preview(
    path: PathLike,
    max_lines: int,
    separator: bytes = b"\n",
    max_bytes: Optional[int] = MAX_PREVIEW_BYTES,
    skip_records: int = 0,
) -> str:
    """
    Read at most `max_lines` records from the start of an artifact.

    Records are joined with newlines, so NUL-separated output comes back
    one entry per line. When `max_bytes` is reached first, the last record
    may be cut short.

    Args:
        path: Artifact to read
        max_lines: Maximum number of records
        separator: Record separator byte
        max_bytes: Upper bound on bytes read, None for no bound
        skip_records: Leading records to drop (headers that are not items)

    Returns:
        Decoded preview text (invalid UTF-8 is replaced)
    """
    if max_lines <= 0:
        return ""

    wanted = max_lines + skip_records
    records: List[bytes] = []
    # pieces of the record currently being read; its size is bounded by max_bytes
    pending: List[bytes] = []
    read_total = 0
    try:
        with open(path, "rb") as f:
            while len(records) < wanted:
                size = CHUNK_SIZE
                if max_bytes is not None:
                    size = min(size, max_bytes - read_total)
                    if size <= 0:
                        break
                chunk = f.read(size)
                if not chunk:
                    break
                read_total += len(chunk)
                parts = chunk.split(separator)
                for part in parts[:-1]:
                    pending.append(part)
                    records.append(b"".join(pending))
                    pending.clear()
                    if len(records) >= wanted:
                        break
                pending.append(parts[-1])
    except FileNotFoundError:
        logger.warning(f"Artifact missing while previewing: {path}")
        return ""

    tail = b"".join(pending)
    if tail and len(records) < wanted:
        records.append(tail)

    selected = records[skip_records:wanted]
    return "\n".join(r.decode("utf-8", errors="replace") for r in selected)


def summarize(
    artifact_path: PathLike,
    item_count: int,
    inline_threshold: int = INLINE_THRESHOLD,
    preview_lines: int = PREVIEW_LINES,
    separator: bytes = b"\n",
    max_preview_bytes: int = MAX_PREVIEW_BYTES,
    skip_records: int = 0,
) -> ResultSummary:
    """
    Summarize an artifact whose item count is already known.

    Results with at most `inline_threshold` items are returned in full,
    provided the artifact also fits in `max_preview_bytes`. Anything
    larger gets the first `preview_lines` items (capped at
    `max_preview_bytes`) and a reference to the artifact.
    """
    reference = str(artifact_path)

    if item_count <= inline_threshold and _artifact_size(artifact_path) <= max_preview_bytes:
        text = read_preview(
            artifact_path,
            max(item_count, 0),
            separator=separator,
            max_bytes=max_preview_bytes,
            skip_records=skip_records,
        )
        return ResultSummary(
            item_count=item_count,
            inline=True,
            preview_text=text,
            artifact_reference=reference,
        )

    preview = read_preview(
        artifact_path,
        preview_lines,
        separator=separator,
        max_bytes=max_preview_bytes,
        skip_records=skip_records,
    )
    shown = len(preview.split("\n")) if preview else 0
    return ResultSummary(
        item_count=item_count,
        inline=False,
        preview_text=preview,
        artifact_reference=reference,
        remaining_items=max(item_count - shown, 0),
    )


def _artifact_size(path: PathLike) -> int:
    try:
        return os.stat(path).st_size
    except FileNotFoundError:
        return 0


def read_bounded_text(path: PathLike, max_bytes: int = 4096) -> str:
    """Read up to `max_bytes` of a small artifact such as stderr."""
    try:
        with open(path, "rb") as f:
            data = f.read(max_bytes + 1)
    except FileNotFoundError:
        return ""
    text = data[:max_bytes].decode("utf-8", errors="replace").strip()
    if len(data) > max_bytes:
        text += "\n... (truncated)"
    return text


def format_bytes(num_bytes: int) -> str:
    """
    Format a byte count with binary units.

    Examples:
        format_bytes(0) -> "0 B"
        format_bytes(1536) -> "1.5 KB"
        format_bytes(2 * 1024 * 1024) -> "2 MB"
    """
    if num_bytes <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    value = float(num_bytes)
    unit = 0
    while value >= 1024 and unit < len(units) - 1:
        value /= 1024
        unit += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {units[unit]}"
