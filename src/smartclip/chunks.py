"""Chunk handles and naming.

Chunks are produced by an external segmenter (e.g. ffmpeg's segment muxer)
as equally long audio files in recording order. The core refers to them by
their zero-based index only.
"""

import math
import re
from dataclasses import dataclass
from pathlib import Path

# Names carry milliseconds, so shorter chunks would share a name
MIN_CHUNK_DURATION = 0.001

_NUMBER = re.compile(r"\d+")


@dataclass(frozen=True)
class Chunk:
    """One fixed-duration slice of source audio.

    Attributes:
        index: Zero-based position in the recording, dense over [0, N)
        path: File produced by the segmenter
    """

    index: int
    path: Path

    @property
    def name(self) -> str:
        return self.path.name


def chunk_sort_key(path: Path) -> tuple[int, str]:
    """Sort key following the segmenter's sequence number.

    chunk_%03d.wav grows past three digits after 999 chunks, so plain name
    order would put chunk_1000.wav before chunk_101.wav. Files without a
    number sort first, by name.
    """
    match = _NUMBER.findall(path.stem)
    return (int(match[-1]) if match else -1, path.name)


def discover_chunks(chunk_dir: Path, pattern: str = "*.wav") -> list[Chunk]:
    """Collect chunk files from a directory in recording order.

    Files are ordered by the last number in their name (the segmenter's
    sequence number), then by name.

    Args:
        chunk_dir: Directory holding the segmenter output
        pattern: Glob for chunk files

    Returns:
        List of Chunk objects indexed 0..N-1

    Raises:
        ValueError: If no chunk files are found
    """
    paths = sorted((p for p in chunk_dir.glob(pattern) if p.is_file()), key=chunk_sort_key)
    if not paths:
        raise ValueError(f"No chunk files matching '{pattern}' in {chunk_dir}")
    return [Chunk(index=i, path=p) for i, p in enumerate(paths)]


def format_timestamp(seconds: float) -> str:
    """Format seconds as HH-MM-SS (file-name safe, sortable)."""
    total = int(seconds)
    h = total // 3600
    m = (total % 3600) // 60
    s = total % 60
    return f"{h:02d}-{m:02d}-{s:02d}"


def timestamp_name(index: int, chunk_duration: float = 1.0, suffix: str = ".wav") -> str:
    """Deterministic audit file name for a chunk's start time.

    Whole-second durations give "HH-MM-SS" (e.g. "00-01-05.wav"); fractional
    durations add milliseconds ("00-00-01.500.wav"). Within one run every
    index gets a distinct name and names sort in index order.

    Args:
        index: Chunk index
        chunk_duration: Seconds per chunk, at least MIN_CHUNK_DURATION
        suffix: File extension including the dot

    Returns:
        Timestamp-style name of the chunk's start time

    Raises:
        ValueError: If chunk_duration is below MIN_CHUNK_DURATION
    """
    if chunk_duration < MIN_CHUNK_DURATION:
        raise ValueError(f"chunk_duration must be at least {MIN_CHUNK_DURATION}s, got {chunk_duration}")

    if float(chunk_duration).is_integer():
        return f"{format_timestamp(index * int(chunk_duration))}{suffix}"

    # Epsilon absorbs float error such as 3 * 0.1 * 1000 = 300.00000000000006 or 299.99...
    millis = math.floor(index * chunk_duration * 1000 + 1e-6)
    return f"{format_timestamp(millis // 1000)}.{millis % 1000:03d}{suffix}"
