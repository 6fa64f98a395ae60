"""Assembly of the final chunk order for concatenation.

The external concatenator joins the returned chunks into one output stream;
the only guarantee given to it is ascending chunk order.
"""

from collections.abc import Sequence
from pathlib import Path
from typing import TypeVar

from .errors import EmptyResult
from .models import Verdict

T = TypeVar("T")


def assemble(verdicts: Sequence[Verdict], chunks: Sequence[T] | None = None) -> list:
    """Return the kept chunks in ascending chunk-index order.

    Args:
        verdicts: Corrected verdicts (after continuity filtering)
        chunks: Optional chunk handles indexed like the verdicts. If None,
            the kept chunk indices are returned instead.

    Returns:
        Kept chunk handles (or indices), strictly increasing by index

    Raises:
        EmptyResult: If no chunk is kept
    """
    kept_indices = sorted(v.chunk_index for v in verdicts if v.is_keep)

    if not kept_indices:
        raise EmptyResult("No continuous segments found", total_chunks=len(verdicts))

    if chunks is None:
        return kept_indices
    return [chunks[i] for i in kept_indices]


def write_concat_list(paths: Sequence[Path], list_path: Path) -> Path:
    """Write an ffmpeg concat demuxer list for the kept chunk files.

    Used as `ffmpeg -f concat -safe 0 -i <list_path> <output>`.

    Args:
        paths: Chunk files in output order
        list_path: Where to write the list

    Returns:
        Path to the written list
    """
    list_path.parent.mkdir(parents=True, exist_ok=True)
    lines = []
    for path in paths:
        # Concat demuxer quoting: close quote, escaped quote, reopen
        escaped = str(Path(path).resolve()).replace("'", "'\\''")
        lines.append(f"file '{escaped}'")

    list_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return list_path
