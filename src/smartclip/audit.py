"""Audit trail of per-chunk decisions.

Layout of the audit directory:
- kept/        copies of kept chunks, named HH-MM-SS.<ext>
- discarded/   copies of discarded chunks, same naming
- classification.jsonl   one run header, then one record per chunk
- summary.json           totals and segments of the run

This is the only side-effecting component. It is written once per run,
after continuity filtering, so each chunk lands in exactly one bucket.
Every record is flushed to disk before the next chunk is written; a failure
leaves all earlier records in place.
"""

import os
import shutil
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

import orjson

from .chunks import Chunk, timestamp_name
from .config import Policy
from .errors import AuditWriteFailure
from .models import ClassificationResult, Verdict

LOG_NAME = "classification.jsonl"
SUMMARY_NAME = "summary.json"
KEPT_DIR = "kept"
DISCARDED_DIR = "discarded"

# Ranked labels written per chunk
TOP_K = 10


class AuditTrailWriter:
    """Write the kept/discarded buckets and the JSONL decision log.

    Use as a context manager so the log is closed even if the run is aborted:

        with AuditTrailWriter(audit_dir, policy) as audit:
            audit.prepare()
            for ...:
                audit.record(chunk, classification, raw, final)
    """

    def __init__(self, audit_dir: Path, policy: Policy, chunk_duration: float = 1.0):
        self.audit_dir = audit_dir
        self.policy = policy
        self.chunk_duration = chunk_duration
        self.kept_dir = audit_dir / KEPT_DIR
        self.discarded_dir = audit_dir / DISCARDED_DIR
        self.log_path = audit_dir / LOG_NAME
        self.summary_path = audit_dir / SUMMARY_NAME
        self.records_written = 0
        self._log = None

    def __enter__(self) -> "AuditTrailWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        if self._log is not None:
            self._log.close()
            self._log = None

    def prepare(self) -> None:
        """Clear any previous run and write the run header.

        Raises:
            AuditWriteFailure: If the directories or log cannot be reset
        """
        try:
            for bucket in (self.kept_dir, self.discarded_dir):
                if bucket.exists():
                    shutil.rmtree(bucket)
                bucket.mkdir(parents=True, exist_ok=True)
            self.summary_path.unlink(missing_ok=True)

            self.close()
            self._log = open(self.log_path, "wb")
        except OSError as e:
            raise AuditWriteFailure(f"Cannot prepare audit directory: {e}", path=str(self.audit_dir)) from e

        self.records_written = 0
        self._append(
            {
                "type": "run",
                "time": datetime.now(UTC).isoformat(),
                "mode": self.policy.mode,
                "target_labels": sorted(self.policy.target_labels),
                "blacklist_labels": sorted(self.policy.blacklist_labels),
                "target_threshold": self.policy.target_threshold,
                "blacklist_threshold": self.policy.blacklist_threshold,
                "low_confidence_threshold": self.policy.low_confidence_threshold,
                "low_confidence_enabled": self.policy.low_confidence_enabled,
                "min_segment_length": self.policy.min_segment_length,
                "chunk_duration": self.chunk_duration,
            }
        )

    def bucket_path(self, chunk: Chunk, verdict: Verdict) -> Path:
        """Destination of a chunk copy for its final verdict."""
        bucket = self.kept_dir if verdict.is_keep else self.discarded_dir
        return bucket / timestamp_name(chunk.index, self.chunk_duration, chunk.path.suffix)

    def record(
        self,
        chunk: Chunk,
        classification: ClassificationResult,
        raw: Verdict,
        final: Verdict,
    ) -> None:
        """Copy the chunk into its bucket and append its log record.

        Args:
            chunk: The chunk handle
            classification: Ranked labels the decision was based on
            raw: Decision engine verdict
            final: Verdict after continuity filtering

        Raises:
            AuditWriteFailure: If the copy or the log write fails
        """
        if self._log is None:
            raise AuditWriteFailure("Audit trail not prepared", chunk.index, str(self.log_path))

        destination = self.bucket_path(chunk, final)
        try:
            shutil.copy2(chunk.path, destination)
        except OSError as e:
            raise AuditWriteFailure(f"Cannot copy {chunk.path}: {e}", chunk.index, str(destination)) from e

        top = classification.top
        self._append(
            {
                "type": "chunk",
                "index": chunk.index,
                "timestamp": destination.stem,
                "source": chunk.name,
                "top_label": top.label,
                "top_score": round(top.score, 5),
                "decision": final.decision.value,
                "reason": final.reason.value,
                "raw_decision": raw.decision.value,
                "raw_reason": raw.reason.value,
                "rule": raw.describe(),
                "labels": [
                    {
                        "label": entry.label,
                        "score": round(entry.score, 6),
                        "mark": self.policy.mark(entry.label),
                    }
                    for entry in classification.entries[:TOP_K]
                ],
            },
            chunk.index,
        )
        self.records_written += 1

    def write_summary(
        self,
        total_chunks: int,
        raw_verdicts: Sequence[Verdict],
        final_verdicts: Sequence[Verdict],
        detected_segments: Sequence,
        segments: Sequence,
    ) -> dict:
        """Write summary.json with totals and segments.

        Returns:
            The summary dict

        Raises:
            AuditWriteFailure: If the file cannot be written
        """
        initial_kept = sum(1 for v in raw_verdicts if v.is_keep)
        final_kept = sum(1 for v in final_verdicts if v.is_keep)

        summary = {
            "total_chunks": total_chunks,
            "initial_kept": initial_kept,
            "initial_kept_pct": _pct(initial_kept, total_chunks),
            "final_kept": final_kept,
            "final_kept_pct": _pct(final_kept, total_chunks),
            "detected_segments": [self._segment_dict(s) for s in detected_segments],
            "segments": [self._segment_dict(s) for s in segments],
            "kept_duration": sum(s.length for s in segments) * self.chunk_duration,
        }

        try:
            with open(self.summary_path, "wb") as f:
                f.write(orjson.dumps(summary, option=orjson.OPT_INDENT_2))
        except OSError as e:
            raise AuditWriteFailure(f"Cannot write summary: {e}", path=str(self.summary_path)) from e

        return summary

    def _segment_dict(self, segment) -> dict:
        return {
            "start": segment.start,
            "end": segment.end,
            "length": segment.length,
            "start_time": timestamp_name(segment.start, self.chunk_duration, ""),
            "end_time": timestamp_name(segment.end, self.chunk_duration, ""),
        }

    def _append(self, record: dict, chunk_index: int | None = None) -> None:
        try:
            self._log.write(orjson.dumps(record) + b"\n")
            self._log.flush()
            os.fsync(self._log.fileno())
        except OSError as e:
            raise AuditWriteFailure(f"Cannot append to audit log: {e}", chunk_index, str(self.log_path)) from e


def _pct(part: int, total: int) -> float:
    return round(100 * part / total, 2) if total else 0.0
