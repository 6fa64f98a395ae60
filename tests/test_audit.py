"""Tests for the audit trail, pipeline orchestration and CLI."""

import orjson
import pytest
from typer.testing import CliRunner

from smartclip.audit import AuditTrailWriter
from smartclip.chunks import Chunk, discover_chunks
from smartclip.classifier import PrecomputedClassifier, iter_classifications
from smartclip.cli import EXIT_NO_MATCH, app
from smartclip.config import Policy
from smartclip.errors import AuditWriteFailure, ClassifierError, EmptyResult
from smartclip.models import ClassificationResult, Decision, ReasonCode, Verdict
from smartclip.pipeline import run_pipeline
from smartclip.progress import ProgressEvent
from smartclip.validation import generate_report, load_chunk_records, load_jsonl, summarize

HIT = [("Kiss", 0.30), ("Music", 0.20)]
MISS = [("Music", 0.60), ("Wind", 0.01)]


def make_policy(**overrides) -> Policy:
    values = {
        "target_labels": {"Kiss"},
        "blacklist_labels": {"Speech"},
        "target_threshold": 0.10,
        "min_segment_length": 3,
        "mode": "test",
    }
    values.update(overrides)
    return Policy(**values)


def make_chunks(directory, count: int) -> list[Chunk]:
    directory.mkdir(parents=True, exist_ok=True)
    for i in range(count):
        (directory / f"chunk_{i:03d}.wav").write_bytes(b"RIFF" + bytes([i]))
    return discover_chunks(directory)


class ListClassifier:
    """Classifier returning canned results and recording call order."""

    def __init__(self, results):
        self.results = [ClassificationResult.from_pairs(r) for r in results]
        self.calls = []

    def classify(self, chunk):
        self.calls.append(chunk.index)
        return self.results[chunk.index]


class FailingClassifier:
    def classify(self, chunk):
        raise RuntimeError("model not loaded")


def write_labels_jsonl(path, results, key="name"):
    with open(path, "wb") as f:
        for i, labels in enumerate(results):
            record = {"labels": [{"label": l, "score": s} for l, s in labels]}
            if key == "name":
                record["chunk"] = f"chunk_{i:03d}.wav"
            f.write(orjson.dumps(record) + b"\n")


class TestClassifier:
    """Tests for the classifier interface."""

    def test_precomputed_by_name(self, tmp_path):
        """Test replaying results keyed by chunk file name."""
        jsonl = tmp_path / "labels.jsonl"
        write_labels_jsonl(jsonl, [MISS, HIT])
        classifier = PrecomputedClassifier.from_jsonl(jsonl)

        chunk = Chunk(1, tmp_path / "chunk_001.wav")
        assert classifier.classify(chunk).top.label == "Kiss"

    def test_precomputed_by_position(self, tmp_path):
        """Test records without a chunk key are matched by position."""
        jsonl = tmp_path / "labels.jsonl"
        write_labels_jsonl(jsonl, [MISS, HIT], key=None)
        classifier = PrecomputedClassifier.from_jsonl(jsonl)

        assert classifier.classify(Chunk(0, tmp_path / "a.wav")).top.label == "Music"
        assert classifier.classify(Chunk(1, tmp_path / "b.wav")).top.label == "Kiss"

    def test_precomputed_missing(self, tmp_path):
        """Test a chunk without a result is a classifier error."""
        classifier = PrecomputedClassifier({})
        with pytest.raises(ClassifierError) as exc:
            classifier.classify(Chunk(4, tmp_path / "chunk_004.wav"))
        assert exc.value.chunk_index == 4

    def test_invalid_record(self, tmp_path):
        """Test a broken JSONL line is reported with its line number."""
        jsonl = tmp_path / "labels.jsonl"
        jsonl.write_bytes(b'{"chunk": 0}\n')
        with pytest.raises(ClassifierError, match="labels.jsonl:1"):
            PrecomputedClassifier.from_jsonl(jsonl)

    def test_sequential_order(self, tmp_path):
        """Test chunks are classified once each, in index order."""
        chunks = [Chunk(i, tmp_path / f"{i}.wav") for i in range(4)]
        classifier = ListClassifier([MISS] * 4)
        results = list(iter_classifications(classifier, chunks))
        assert classifier.calls == [0, 1, 2, 3]
        assert [c.index for c, _ in results] == [0, 1, 2, 3]

    def test_failure_not_retried(self, tmp_path):
        """Test classifier exceptions propagate as ClassifierError."""
        chunks = [Chunk(0, tmp_path / "0.wav")]
        with pytest.raises(ClassifierError, match="model not loaded"):
            list(iter_classifications(FailingClassifier(), chunks))


class TestAuditTrail:
    """Tests for the audit trail writer."""

    def test_prepare_clears_previous_run(self, tmp_path):
        """Test a fresh run removes earlier bucket contents."""
        audit_dir = tmp_path / "audit"
        (audit_dir / "kept").mkdir(parents=True)
        (audit_dir / "kept" / "stale.wav").write_bytes(b"old")
        (audit_dir / "summary.json").write_bytes(b"{}")

        with AuditTrailWriter(audit_dir, make_policy()) as audit:
            audit.prepare()

        assert list((audit_dir / "kept").iterdir()) == []
        assert (audit_dir / "discarded").is_dir()
        assert not (audit_dir / "summary.json").exists()
        header = load_jsonl(audit_dir / "classification.jsonl")
        assert header[0]["type"] == "run"
        assert header[0]["target_labels"] == ["Kiss"]

    def test_record_routes_by_final_verdict(self, tmp_path):
        """Test chunks are copied into the bucket of their final verdict."""
        chunks = make_chunks(tmp_path / "chunks", 2)
        classification = ClassificationResult.from_pairs(HIT)
        raw = Verdict(0, Decision.KEEP, ReasonCode.TARGET_HIT, "Kiss", 0.3)
        final = raw.with_decision(Decision.DISCARD, ReasonCode.SHORT_SEGMENT)

        audit_dir = tmp_path / "audit"
        with AuditTrailWriter(audit_dir, make_policy()) as audit:
            audit.prepare()
            audit.record(chunks[0], classification, raw, final)
            audit.record(chunks[1], classification, raw.with_decision(Decision.KEEP, ReasonCode.TARGET_HIT), raw)

        assert (audit_dir / "discarded" / "00-00-00.wav").read_bytes() == b"RIFF\x00"
        assert (audit_dir / "kept" / "00-00-01.wav").exists()

        records = load_chunk_records(audit_dir / "classification.jsonl")
        assert records[0]["decision"] == "DISCARD"
        assert records[0]["reason"] == "SHORT_SEGMENT"
        assert records[0]["raw_decision"] == "KEEP"
        assert records[0]["raw_reason"] == "TARGET_HIT"
        assert records[0]["rule"] == "Target hit: Kiss (30.0000%)"
        assert records[0]["top_label"] == "Kiss"
        assert records[0]["labels"][0]["mark"] == "target"
        assert records[0]["timestamp"] == "00-00-00"

    def test_failure_keeps_prior_records(self, tmp_path):
        """Test a failed copy surfaces and earlier records stay on disk."""
        chunks = make_chunks(tmp_path / "chunks", 2)
        chunks[1].path.unlink()
        classification = ClassificationResult.from_pairs(MISS)
        verdict = Verdict(0, Decision.DISCARD, ReasonCode.NO_MATCH, "Music", 0.6)

        audit_dir = tmp_path / "audit"
        with AuditTrailWriter(audit_dir, make_policy()) as audit:
            audit.prepare()
            audit.record(chunks[0], classification, verdict, verdict)
            with pytest.raises(AuditWriteFailure) as exc:
                audit.record(chunks[1], classification, verdict, verdict)

        assert exc.value.chunk_index == 1
        records = load_chunk_records(audit_dir / "classification.jsonl")
        assert [r["index"] for r in records] == [0]
        assert (audit_dir / "discarded" / "00-00-00.wav").exists()

    def test_record_before_prepare(self, tmp_path):
        """Test recording without a prepared trail fails."""
        chunks = make_chunks(tmp_path / "chunks", 1)
        verdict = Verdict(0, Decision.DISCARD, ReasonCode.NO_MATCH)
        audit = AuditTrailWriter(tmp_path / "audit", make_policy())
        with pytest.raises(AuditWriteFailure):
            audit.record(chunks[0], ClassificationResult.from_pairs(MISS), verdict, verdict)


class TestPipeline:
    """End-to-end tests of a pipeline run."""

    def test_run(self, tmp_path):
        """Test a run keeps the long run and drops the isolated hit."""
        results = [MISS, HIT, MISS, HIT, HIT, HIT, HIT, MISS]
        chunks = make_chunks(tmp_path / "chunks", len(results))
        classifier = ListClassifier(results)
        events = []

        result = run_pipeline(
            chunks=chunks,
            classifier=classifier,
            policy=make_policy(),
            audit_dir=tmp_path / "audit",
            concat_list=tmp_path / "filelist.txt",
            progress=events.append,
        )

        assert classifier.calls == list(range(8))
        assert [c.index for c in result.kept_chunks] == [3, 4, 5, 6]
        assert [v.chunk_index for v in result.raw_verdicts if v.is_keep] == [1, 3, 4, 5, 6]
        assert result.verdicts[1].reason is ReasonCode.SHORT_SEGMENT
        assert len(result.segments) == 1
        assert len(result.detected_segments) == 2
        assert result.kept_duration == 4.0

        kept = sorted(p.name for p in (tmp_path / "audit" / "kept").iterdir())
        assert kept == ["00-00-03.wav", "00-00-04.wav", "00-00-05.wav", "00-00-06.wav"]
        assert len(list((tmp_path / "audit" / "discarded").iterdir())) == 4

        lines = (tmp_path / "filelist.txt").read_text().splitlines()
        assert len(lines) == 4
        assert lines[0].endswith("chunk_003.wav'")

        summary = orjson.loads((tmp_path / "audit" / "summary.json").read_bytes())
        assert summary["initial_kept"] == 5
        assert summary["final_kept"] == 4
        assert summary["segments"] == [
            {"start": 3, "end": 6, "length": 4, "start_time": "00-00-03", "end_time": "00-00-06"}
        ]

        assert ProgressEvent("Analyzing", 8, 8) in events
        assert events[-1] == ProgressEvent("Auditing", 8, 8)

    def test_empty_result_writes_audit(self, tmp_path):
        """Test a run with no match raises EmptyResult after writing the trail."""
        chunks = make_chunks(tmp_path / "chunks", 5)
        with pytest.raises(EmptyResult):
            run_pipeline(chunks, ListClassifier([MISS] * 5), make_policy(), tmp_path / "audit")

        assert len(list((tmp_path / "audit" / "discarded").iterdir())) == 5
        assert (tmp_path / "audit" / "summary.json").exists()

    def test_classifier_failure(self, tmp_path):
        """Test a classifier failure aborts the run."""
        chunks = make_chunks(tmp_path / "chunks", 2)
        with pytest.raises(ClassifierError):
            run_pipeline(chunks, FailingClassifier(), make_policy(), tmp_path / "audit")

    def test_chunk_duration_naming(self, tmp_path):
        """Test audit names follow the chunk duration."""
        chunks = make_chunks(tmp_path / "chunks", 3)
        result = run_pipeline(
            chunks,
            ListClassifier([HIT] * 3),
            make_policy(),
            tmp_path / "audit",
            chunk_duration=30.0,
        )
        kept = sorted(p.name for p in (tmp_path / "audit" / "kept").iterdir())
        assert kept == ["00-00-00.wav", "00-00-30.wav", "00-01-00.wav"]
        assert result.kept_duration == 90.0

    def test_sub_second_chunk_names(self, tmp_path):
        """Test half-second chunks each get their own audit file."""
        chunks = make_chunks(tmp_path / "chunks", 6)
        run_pipeline(
            chunks,
            ListClassifier([HIT] * 6),
            make_policy(),
            tmp_path / "audit",
            chunk_duration=0.5,
        )
        kept = sorted(p.name for p in (tmp_path / "audit" / "kept").iterdir())
        assert kept == [
            "00-00-00.000.wav",
            "00-00-00.500.wav",
            "00-00-01.000.wav",
            "00-00-01.500.wav",
            "00-00-02.000.wav",
            "00-00-02.500.wav",
        ]
        records = load_chunk_records(tmp_path / "audit" / "classification.jsonl")
        assert [r["timestamp"] for r in records] == [name[:-4] for name in kept]

    def test_label_in_both_sets_marked(self, tmp_path):
        """Test the audit log marks a label that is target and blacklisted."""
        chunks = make_chunks(tmp_path / "chunks", 3)
        results = [[("Speech", 0.05), ("Music", 0.01)]] * 3
        policy = make_policy(target_labels={"Kiss", "Speech"}, target_threshold=0.01)
        run_pipeline(chunks, ListClassifier(results), policy, tmp_path / "audit")
        records = load_chunk_records(tmp_path / "audit" / "classification.jsonl")
        assert records[0]["labels"][0]["mark"] == "both"
        assert records[0]["reason"] == "TARGET_HIT"

    def test_report(self, tmp_path):
        """Test statistics computed from the audit log."""
        results = [HIT, HIT, HIT, MISS]
        chunks = make_chunks(tmp_path / "chunks", len(results))
        run_pipeline(chunks, ListClassifier(results), make_policy(), tmp_path / "audit")

        log = tmp_path / "audit" / "classification.jsonl"
        stats = summarize(load_chunk_records(log))
        assert stats["total_chunks"] == 4
        assert stats["kept"] == 3
        assert stats["kept_pct"] == 75.0
        assert stats["reasons"] == {"TARGET_HIT": 3, "NO_MATCH": 1}

        report = generate_report(log, tmp_path / "report.json")
        assert report["run"]["mode"] == "test"
        assert report["segments"][0]["length"] == 3
        assert (tmp_path / "report.json").exists()


class TestCLI:
    """Tests for the command-line interface."""

    runner = CliRunner()

    def test_run(self, tmp_path):
        """Test a successful CLI run."""
        results = [HIT, HIT, HIT, MISS]
        make_chunks(tmp_path / "chunks", len(results))
        labels = tmp_path / "labels.jsonl"
        write_labels_jsonl(labels, results)

        result = self.runner.invoke(
            app,
            [
                "run",
                str(tmp_path / "chunks"),
                str(labels),
                "--mode", "default",
                "--audit-dir", str(tmp_path / "audit"),
                "--concat-list", str(tmp_path / "filelist.txt"),
                "--quiet",
            ],
        )
        assert result.exit_code == 0, result.output
        assert len((tmp_path / "filelist.txt").read_text().splitlines()) == 3

    def test_run_no_match(self, tmp_path):
        """Test nothing matched exits with a distinct code."""
        make_chunks(tmp_path / "chunks", 3)
        labels = tmp_path / "labels.jsonl"
        write_labels_jsonl(labels, [MISS] * 3)

        result = self.runner.invoke(
            app,
            ["run", str(tmp_path / "chunks"), str(labels), "--audit-dir", str(tmp_path / "audit"), "-q"],
        )
        assert result.exit_code == EXIT_NO_MATCH
        assert "No matches found" in result.output

    def test_run_invalid_policy(self, tmp_path):
        """Test invalid configuration fails before processing."""
        make_chunks(tmp_path / "chunks", 3)
        labels = tmp_path / "labels.jsonl"
        write_labels_jsonl(labels, [HIT] * 3)

        result = self.runner.invoke(
            app,
            [
                "run",
                str(tmp_path / "chunks"),
                str(labels),
                "--min-segment-length", "0",
                "--audit-dir", str(tmp_path / "audit"),
            ],
        )
        assert result.exit_code == 1
        assert not (tmp_path / "audit").exists()

    def test_modes(self, tmp_path):
        """Test listing and exporting modes."""
        output = tmp_path / "modes.json"
        result = self.runner.invoke(app, ["modes", "--output", str(output)])
        assert result.exit_code == 0
        assert "licking:" in result.output
        assert "Slurp" in orjson.loads(output.read_bytes())["modes"]["licking"]

    def test_modes_blacklist_round_trip(self, tmp_path):
        """Test an edited blacklist in an exported modes file is shown and applied."""
        exported = tmp_path / "modes.json"
        self.runner.invoke(app, ["modes", "--output", str(exported)])
        data = orjson.loads(exported.read_bytes())
        data["blacklist"] = ["Music"]
        exported.write_bytes(orjson.dumps(data))

        result = self.runner.invoke(app, ["modes", "--modes-file", str(exported)])
        assert result.exit_code == 0
        assert "blacklist: Music" in result.output

        # Music at 0.20 in HIT now reaches the blacklist threshold
        make_chunks(tmp_path / "chunks", 3)
        labels = tmp_path / "labels.jsonl"
        write_labels_jsonl(labels, [HIT] * 3)
        result = self.runner.invoke(
            app,
            [
                "run",
                str(tmp_path / "chunks"),
                str(labels),
                "--mode", "default",
                "--modes-file", str(exported),
                "--audit-dir", str(tmp_path / "audit"),
                "-q",
            ],
        )
        assert result.exit_code == EXIT_NO_MATCH
        records = load_chunk_records(tmp_path / "audit" / "classification.jsonl")
        assert {r["reason"] for r in records} == {"BLACKLIST_HIT"}

    def test_modes_file_not_an_object(self, tmp_path):
        """Test a modes file holding a bare number is reported, not a crash."""
        path = tmp_path / "modes.json"
        path.write_text("42")
        result = self.runner.invoke(app, ["modes", "--modes-file", str(path)])
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
