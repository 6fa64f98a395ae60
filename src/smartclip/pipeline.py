"""Main pipeline orchestration.

Coordinates all stages of a chunk selection run:
1. Audit trail reset
2. Classification + per-chunk decision (sequential, one classifier call per chunk)
3. Continuity filtering over the full verdict sequence
4. Audit trail write (single pass with final verdicts)
5. Assembly of the ordered keep list for the concatenator
"""

from dataclasses import dataclass, field
from pathlib import Path

from .assembler import assemble, write_concat_list
from .audit import AuditTrailWriter
from .chunks import Chunk, timestamp_name
from .classifier import Classifier, iter_classifications
from .config import Policy
from .continuity import detect_segments, filter_for_continuity
from .decision import decide
from .models import ClassificationResult, Segment, Verdict
from .progress import ProgressCallback, ProgressEvent, null_progress


@dataclass
class RunResult:
    """Outcome of one pipeline run."""

    total_chunks: int
    raw_verdicts: list[Verdict]
    verdicts: list[Verdict]
    segments: list[Segment]
    kept_chunks: list[Chunk]
    chunk_duration: float
    audit_dir: Path
    concat_list: Path | None = None
    detected_segments: list[Segment] = field(default_factory=list)

    @property
    def kept_count(self) -> int:
        return len(self.kept_chunks)

    @property
    def kept_duration(self) -> float:
        return self.kept_count * self.chunk_duration


def run_pipeline(
    chunks: list[Chunk],
    classifier: Classifier,
    policy: Policy,
    audit_dir: Path,
    chunk_duration: float = 1.0,
    concat_list: Path | None = None,
    progress: ProgressCallback | None = None,
) -> RunResult:
    """Run the full chunk selection pipeline.

    Args:
        chunks: Chunk handles indexed 0..N-1 in recording order
        classifier: External sound classifier
        policy: Run policy (validated on construction)
        audit_dir: Directory for the audit trail (cleared first)
        chunk_duration: Seconds per chunk
        concat_list: Optional path for an ffmpeg concat list of kept chunks
        progress: Optional per-run progress callback

    Returns:
        RunResult with verdicts, surviving segments and kept chunks in order

    Raises:
        EmptyResult: If no chunk survives (audit trail is still written)
        ClassifierError: If the classifier fails
        MalformedClassification: If a classification is malformed
        AuditWriteFailure: If recording a chunk fails
    """
    report = progress or null_progress
    total = len(chunks)

    print("SmartClip Pipeline Starting")
    print(f"{'='*60}")
    print(f"Mode: {policy.mode}")
    print(f"Chunks: {total} x {chunk_duration:g}s")
    print(f"Target threshold: {policy.target_threshold}")
    print(f"Blacklist threshold: {policy.blacklist_threshold}")
    low_confidence = policy.low_confidence_threshold if policy.low_confidence_enabled else "disabled"
    print(f"Low confidence threshold: {low_confidence}")
    print(f"Min segment length: {policy.min_segment_length}")
    print(f"Audit dir: {audit_dir}")
    print(f"{'='*60}\n")

    for i, chunk in enumerate(chunks):
        if chunk.index != i:
            raise ValueError(f"Chunk at position {i} has index {chunk.index}")

    with AuditTrailWriter(audit_dir, policy, chunk_duration) as audit:
        # Step 1: Fresh audit trail
        print("[1/5] Preparing audit trail...")
        report(ProgressEvent("Preparing", 0, 1))
        audit.prepare()
        report(ProgressEvent("Preparing", 1, 1))

        # Step 2: Classify and decide
        print("\n[2/5] Analyzing chunks...")
        classifications: list[ClassificationResult] = []
        raw_verdicts: list[Verdict] = []
        report(ProgressEvent("Analyzing", 0, total))
        for chunk, classification in iter_classifications(classifier, chunks):
            verdict = decide(chunk.index, classification, policy)
            classifications.append(classification)
            raw_verdicts.append(verdict)
            report(ProgressEvent("Analyzing", chunk.index + 1, total))

        initial_kept = sum(1 for v in raw_verdicts if v.is_keep)
        print(f"  Initial kept: {initial_kept}/{total}")

        # Step 3: Continuity
        print("\n[3/5] Detecting continuous segments...")
        detected = detect_segments(raw_verdicts)
        verdicts, segments = filter_for_continuity(raw_verdicts, policy.min_segment_length)
        print(f"  Found segments: {len(detected)}")
        print(f"  Kept segments (min {policy.min_segment_length}): {len(segments)}")
        for segment in segments:
            start = timestamp_name(segment.start, chunk_duration, "")
            end = timestamp_name(segment.end, chunk_duration, "")
            print(f"    {start} - {end} ({segment.length * chunk_duration:g}s)")

        # Step 4: Audit trail
        print("\n[4/5] Writing audit trail...")
        report(ProgressEvent("Auditing", 0, total))
        for chunk, classification, raw, final in zip(chunks, classifications, raw_verdicts, verdicts):
            audit.record(chunk, classification, raw, final)
            report(ProgressEvent("Auditing", chunk.index + 1, total))
        audit.write_summary(total, raw_verdicts, verdicts, detected, segments)

    # Step 5: Assemble
    print("\n[5/5] Assembling kept chunks...")
    kept_chunks = assemble(verdicts, chunks)

    if concat_list is not None:
        write_concat_list([c.path for c in kept_chunks], concat_list)
        print(f"  Concat list: {concat_list}")

    result = RunResult(
        total_chunks=total,
        raw_verdicts=raw_verdicts,
        verdicts=verdicts,
        segments=segments,
        kept_chunks=kept_chunks,
        chunk_duration=chunk_duration,
        audit_dir=audit_dir,
        concat_list=concat_list,
        detected_segments=detected,
    )

    # Summary
    print(f"\n{'='*60}")
    print("Pipeline Complete!")
    print(f"{'='*60}")
    print(f"Total chunks: {total}")
    print(f"Kept chunks: {result.kept_count} ({result.kept_duration:g}s)")
    print(f"Segments: {len(segments)}")
    print(f"{'='*60}")

    return result
