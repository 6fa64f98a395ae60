"""Continuity filtering of per-chunk verdicts.

Isolated keeps are usually classifier noise. After the decision engine has
run over the whole recording, maximal runs of KEEP verdicts are detected and
runs shorter than the minimum length are dropped. The surviving runs become
the final keep set.

This is not a streaming algorithm: it needs the complete, index-ordered
verdict sequence.
"""

from collections.abc import Sequence

from .config import validate_min_segment_length
from .models import Decision, ReasonCode, Segment, Verdict


def detect_segments(verdicts: Sequence[Verdict]) -> list[Segment]:
    """Find every maximal run of consecutive KEEP verdicts.

    Single left-to-right pass tracking whether a run is open.

    Args:
        verdicts: Verdicts in chunk-index order

    Returns:
        Segments in increasing start order
    """
    segments = []
    run_start = None

    for i, verdict in enumerate(verdicts):
        if verdict.is_keep:
            if run_start is None:
                run_start = i
        elif run_start is not None:
            segments.append(Segment(run_start, i - 1))
            run_start = None

    # Flush a run reaching the end of the recording
    if run_start is not None:
        segments.append(Segment(run_start, len(verdicts) - 1))

    return segments


def filter_for_continuity(
    verdicts: Sequence[Verdict],
    min_segment_length: int,
) -> tuple[list[Verdict], list[Segment]]:
    """Drop keep runs shorter than min_segment_length.

    Every chunk inside a surviving segment stays KEEP with its original
    verdict; every other chunk becomes DISCARD. A KEEP downgraded here gets
    reason SHORT_SEGMENT but keeps its triggering label and score.

    Args:
        verdicts: Raw verdicts in chunk-index order, indices 0..N-1
        min_segment_length: Shortest run that survives (must be positive)

    Returns:
        Tuple of (corrected verdicts, surviving segments)

    Raises:
        InvalidPolicyConfiguration: If min_segment_length is not positive
        ValueError: If verdict indices are not dense and in order
    """
    validate_min_segment_length(min_segment_length)

    for i, verdict in enumerate(verdicts):
        if verdict.chunk_index != i:
            raise ValueError(f"Verdict at position {i} has chunk index {verdict.chunk_index}")

    segments = [s for s in detect_segments(verdicts) if s.length >= min_segment_length]

    kept = set()
    for segment in segments:
        kept.update(segment.indices())

    corrected = []
    for verdict in verdicts:
        if verdict.chunk_index in kept:
            corrected.append(verdict)
        elif verdict.is_keep:
            corrected.append(verdict.with_decision(Decision.DISCARD, ReasonCode.SHORT_SEGMENT))
        else:
            corrected.append(verdict)

    return corrected, segments
