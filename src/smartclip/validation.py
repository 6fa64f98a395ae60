"""Statistics and reports for the audit log.

Provides tools to:
- Summarize decisions and the rules that fired
- Show top-1 score distributions
- Generate JSON reports
"""

from collections import Counter
from pathlib import Path

import orjson


def load_jsonl(jsonl_path: Path) -> list[dict]:
    """Load JSONL file into list of dicts.

    Args:
        jsonl_path: Path to JSONL file

    Returns:
        List of parsed JSON objects
    """
    results = []
    with open(jsonl_path, "rb") as f:
        for line in f:
            line = line.strip()
            if line:
                results.append(orjson.loads(line))
    return results


def load_chunk_records(jsonl_path: Path) -> list[dict]:
    """Load only the per-chunk records of an audit log."""
    return [r for r in load_jsonl(jsonl_path) if r.get("type") == "chunk"]


def summarize(records: list[dict]) -> dict:
    """Compute counts and score statistics for chunk records.

    Args:
        records: Per-chunk audit records

    Returns:
        Dict with decision, reason and top label counts plus score stats
    """
    total = len(records)
    kept = sum(1 for r in records if r.get("decision") == "KEEP")
    raw_kept = sum(1 for r in records if r.get("raw_decision") == "KEEP")
    scores = [r.get("top_score", 0) for r in records]

    return {
        "total_chunks": total,
        "kept": kept,
        "kept_pct": round(100 * kept / total, 2) if total else 0.0,
        "raw_kept": raw_kept,
        "decisions": dict(Counter(r.get("decision", "unknown") for r in records)),
        "reasons": dict(Counter(r.get("reason", "unknown") for r in records)),
        "raw_reasons": dict(Counter(r.get("raw_reason", "unknown") for r in records)),
        "top_labels": dict(Counter(r.get("top_label", "unknown") for r in records).most_common(10)),
        "top_scores": {
            "min": min(scores) if scores else 0.0,
            "max": max(scores) if scores else 0.0,
            "mean": sum(scores) / len(scores) if scores else 0.0,
        },
    }


def show_stats(jsonl_path: Path):
    """Display statistics about an audit log.

    Shows:
    - Total chunks and kept percentage
    - Decision and rule breakdown
    - Most frequent top-1 labels
    - Top-1 score histogram

    Args:
        jsonl_path: Path to classification.jsonl
    """
    records = load_chunk_records(jsonl_path)

    if not records:
        print("No chunk records found in file.")
        return

    stats = summarize(records)

    print(f"\n{'='*60}")
    print(f"SmartClip Audit Log: {jsonl_path}")
    print(f"{'='*60}\n")

    print(f"Total chunks: {stats['total_chunks']}")
    print(f"Kept before continuity: {stats['raw_kept']}")
    print(f"Kept after continuity: {stats['kept']} ({stats['kept_pct']:.1f}%)")

    print("\nRules fired (before continuity):")
    for reason, count in sorted(stats["raw_reasons"].items()):
        pct = 100 * count / stats["total_chunks"]
        print(f"  {reason}: {count} ({pct:.1f}%)")

    print("\nFinal reasons:")
    for reason, count in sorted(stats["reasons"].items()):
        pct = 100 * count / stats["total_chunks"]
        print(f"  {reason}: {count} ({pct:.1f}%)")

    print("\nMost frequent top-1 labels:")
    for label, count in stats["top_labels"].items():
        print(f"  {label}: {count}")

    print("\nTop-1 scores:")
    print(f"  Min: {stats['top_scores']['min']:.4f}")
    print(f"  Max: {stats['top_scores']['max']:.4f}")
    print(f"  Mean: {stats['top_scores']['mean']:.4f}")

    print("\nTop-1 score distribution:")
    _print_histogram([r.get("top_score", 0) for r in records])


def _print_histogram(values: list[float], bins: int = 10):
    """Print a text-based histogram.

    Args:
        values: List of float values
        bins: Number of histogram bins
    """
    min_val, max_val = min(values), max(values)
    bin_width = (max_val - min_val) / bins if max_val > min_val else 1

    bin_counts = [0] * bins
    for v in values:
        bin_idx = min(int((v - min_val) / bin_width), bins - 1)
        bin_counts[bin_idx] += 1

    max_count = max(bin_counts)
    bar_width = 40

    for i, count in enumerate(bin_counts):
        bin_start = min_val + i * bin_width
        bin_end = bin_start + bin_width
        bar_len = int(bar_width * count / max_count) if max_count > 0 else 0
        bar = "█" * bar_len
        print(f"  [{bin_start:.2f}-{bin_end:.2f}]: {bar} ({count})")


def generate_report(
    jsonl_path: Path,
    output_path: Path | None = None,
) -> dict:
    """Generate a report of an audit log.

    Includes the run header and summary.json when present next to the log.

    Args:
        jsonl_path: Path to classification.jsonl
        output_path: Optional path to save report JSON

    Returns:
        Report dict with statistics
    """
    entries = load_jsonl(jsonl_path)
    records = [r for r in entries if r.get("type") == "chunk"]

    if not records:
        return {"error": "No chunk records found"}

    report = summarize(records)
    header = next((r for r in entries if r.get("type") == "run"), None)
    if header:
        report["run"] = header

    summary_path = jsonl_path.parent / "summary.json"
    if summary_path.exists():
        with open(summary_path, "rb") as f:
            report["segments"] = orjson.loads(f.read()).get("segments", [])

    if output_path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "wb") as f:
            f.write(orjson.dumps(report, option=orjson.OPT_INDENT_2))
        print(f"Report saved to {output_path}")

    return report
