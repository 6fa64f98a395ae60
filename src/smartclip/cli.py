"""Command-line interface for the SmartClip pipeline."""

from pathlib import Path

import typer

app = typer.Typer(
    name="smartclip",
    help="Keep the chunks of a recording that match a sound-event mode",
    add_completion=False,
)

# Exit code when nothing matched, distinct from failures (1)
EXIT_NO_MATCH = 2


@app.command()
def run(
    chunk_dir: Path = typer.Argument(
        ...,
        help="Directory with the recording split into equal chunks (chunk_000.wav, ...)",
        exists=True,
        file_okay=False,
    ),
    classifications: Path = typer.Argument(
        ...,
        help="JSONL file with the ranked classifier labels for each chunk",
        exists=True,
        readable=True,
    ),
    mode: str | None = typer.Option(
        None,
        "--mode",
        "-m",
        help="Target label set: default, licking, talking, sleep or a custom mode",
    ),
    target_threshold: float | None = typer.Option(
        None,
        "--threshold",
        "-t",
        help="Min target label score to keep a chunk",
        min=0.0,
        max=1.0,
    ),
    blacklist_threshold: float | None = typer.Option(
        None,
        "--blacklist-threshold",
        help="Min blacklist label score to discard a chunk",
        min=0.0,
        max=1.0,
    ),
    low_confidence_threshold: float | None = typer.Option(
        None,
        "--low-confidence-threshold",
        help="Keep chunks whose best score is below this",
        min=0.0,
        max=1.0,
    ),
    no_low_confidence: bool = typer.Option(
        False,
        "--no-low-confidence",
        help="Disable keeping chunks the classifier is unsure about",
    ),
    min_segment_length: int | None = typer.Option(
        None,
        "--min-segment-length",
        "-s",
        help="Min consecutive kept chunks to survive",
    ),
    chunk_duration: float | None = typer.Option(
        None,
        "--chunk-duration",
        help="Chunk duration in seconds",
    ),
    modes_file: Path | None = typer.Option(
        None,
        "--modes-file",
        help="JSON file with custom modes",
        exists=True,
        readable=True,
    ),
    audit_dir: Path | None = typer.Option(
        None,
        "--audit-dir",
        "-a",
        help="Directory for kept/discarded chunks and the audit log",
    ),
    concat_list: Path | None = typer.Option(
        None,
        "--concat-list",
        "-o",
        help="Write an ffmpeg concat list of the kept chunks",
    ),
    pattern: str = typer.Option(
        "*.wav",
        "--pattern",
        help="Glob for chunk files",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Hide progress bars",
    ),
) -> None:
    """Select the chunks of a recording that match a mode.

    This pipeline:
    1. Reads ranked labels for each chunk from an external classifier
    2. Decides keep/discard per chunk (blacklist, target, low confidence)
    3. Drops isolated keep runs shorter than the minimum length
    4. Writes kept/discarded chunks and a JSONL audit log
    5. Outputs the ordered kept chunks as an ffmpeg concat list

    Example:
        smartclip run temp_chunks/ labels.jsonl --mode licking -o filelist.txt
    """
    from .chunks import discover_chunks
    from .classifier import PrecomputedClassifier
    from .config import load_config
    from .errors import EmptyResult, SmartClipError
    from .pipeline import run_pipeline
    from .progress import TqdmProgress

    overrides = {
        "mode": mode,
        "target_threshold": target_threshold,
        "blacklist_threshold": blacklist_threshold,
        "low_confidence_threshold": low_confidence_threshold,
        "min_segment_length": min_segment_length,
        "chunk_duration": chunk_duration,
        "modes_file": modes_file,
        "audit_dir": audit_dir,
    }
    if no_low_confidence:
        overrides["low_confidence_enabled"] = False

    try:
        config = load_config(**{k: v for k, v in overrides.items() if v is not None})
        policy = config.to_policy()
        chunks = discover_chunks(chunk_dir, pattern)
        classifier = PrecomputedClassifier.from_jsonl(classifications)

        with TqdmProgress(disable=quiet) as progress:
            run_pipeline(
                chunks=chunks,
                classifier=classifier,
                policy=policy,
                audit_dir=config.audit_dir,
                chunk_duration=config.chunk_duration,
                concat_list=concat_list,
                progress=progress,
            )
    except EmptyResult as e:
        typer.echo(f"No matches found: {e}")
        raise typer.Exit(code=EXIT_NO_MATCH)
    except (SmartClipError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


@app.command()
def stats(
    jsonl_path: Path = typer.Argument(
        ...,
        help="Path to classification.jsonl audit log",
        exists=True,
        readable=True,
    ),
) -> None:
    """Show statistics about a run's audit log."""
    from .validation import show_stats

    show_stats(jsonl_path)


@app.command()
def report(
    jsonl_path: Path = typer.Argument(
        ...,
        help="Path to classification.jsonl audit log",
        exists=True,
        readable=True,
    ),
    output: Path = typer.Option(
        Path("output/report.json"),
        "--output",
        "-o",
        help="Output JSON report path",
    ),
) -> None:
    """Write a JSON report of a run's audit log."""
    from .validation import generate_report

    generate_report(jsonl_path, output)


@app.command()
def modes(
    modes_file: Path | None = typer.Option(
        None,
        "--modes-file",
        help="JSON file with custom modes",
        exists=True,
        readable=True,
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Export modes and blacklist to a JSON file for editing",
    ),
) -> None:
    """List the available modes and their target labels."""
    from .errors import InvalidPolicyConfiguration
    from .labels import (
        BLACKLIST_LABELS,
        available_modes,
        export_modes,
        load_custom_blacklist,
        load_custom_modes,
    )

    try:
        custom = load_custom_modes(modes_file) if modes_file else None
        blacklist = load_custom_blacklist(modes_file) if modes_file else None
    except (InvalidPolicyConfiguration, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    for name, labels in sorted(available_modes(custom).items()):
        typer.echo(f"{name}: {', '.join(labels)}")
    if blacklist is None:
        blacklist = list(BLACKLIST_LABELS)
    typer.echo(f"blacklist: {', '.join(blacklist)}")

    if output:
        export_modes(output, custom, blacklist)
        typer.echo(f"Saved to {output}")


if __name__ == "__main__":
    app()
