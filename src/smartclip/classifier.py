"""Classifier interface.

Inference happens outside this package (e.g. YAMNet hosted in a browser or a
separate service). The core only needs `classify(chunk) -> ranked labels`.
The classifier is a single, non-reentrant resource: it is called once per
chunk, in increasing index order, and each call completes before the next.
"""

from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Protocol

import orjson

from .chunks import Chunk
from .errors import ClassifierError
from .models import ClassificationResult


class Classifier(Protocol):
    """Anything that returns a ranked label list for a chunk."""

    def classify(self, chunk: Chunk) -> ClassificationResult: ...


class PrecomputedClassifier:
    """Replays classification results produced by an external classifier.

    Results are looked up by chunk file name first, then by chunk index.
    """

    def __init__(self, results: dict[str | int, ClassificationResult]):
        self.results = results

    @classmethod
    def from_jsonl(cls, jsonl_path: Path) -> "PrecomputedClassifier":
        """Load results from a JSONL file.

        Each line has the format:
            {"chunk": "chunk_000.wav" | 0, "labels": [{"label": "Kiss", "score": 0.3}, ...]}

        Lines without a "chunk" key are keyed by their position in the file.

        Args:
            jsonl_path: Path to JSONL file

        Returns:
            PrecomputedClassifier serving the loaded results
        """
        results: dict[str | int, ClassificationResult] = {}
        position = 0
        with open(jsonl_path, "rb") as f:
            for line_no, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = orjson.loads(line)
                    key = record.get("chunk", position)
                    results[key] = ClassificationResult.from_pairs(record["labels"])
                except (orjson.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
                    raise ClassifierError(f"Invalid record at {jsonl_path}:{line_no}: {e}") from e
                position += 1
        return cls(results)

    def classify(self, chunk: Chunk) -> ClassificationResult:
        if chunk.name in self.results:
            return self.results[chunk.name]
        if chunk.index in self.results:
            return self.results[chunk.index]
        raise ClassifierError(f"No classification available for {chunk.name}", chunk.index)


def iter_classifications(
    classifier: Classifier,
    chunks: Iterable[Chunk],
) -> Iterator[tuple[Chunk, ClassificationResult]]:
    """Classify chunks one at a time in index order.

    Failures are not retried: the core has no authority over the
    classifier's lifecycle, so any error ends the run.

    Args:
        classifier: External classifier
        chunks: Chunks in increasing index order

    Yields:
        Tuples of (chunk, classification)

    Raises:
        ClassifierError: If the classifier fails for any chunk
    """
    for chunk in chunks:
        try:
            result = classifier.classify(chunk)
        except ClassifierError:
            raise
        except Exception as e:
            raise ClassifierError(f"Classifier failed for {chunk.name}: {e}", chunk.index) from e
        yield chunk, result
