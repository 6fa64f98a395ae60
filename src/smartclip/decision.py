"""Per-chunk decision engine.

Rules are applied in strict priority order, first match wins:

1. Blacklist: a blacklist label at or above blacklist_threshold -> DISCARD
2. Target: a target label at or above target_threshold -> KEEP
3. Low confidence: every score below low_confidence_threshold -> KEEP
4. Default -> DISCARD

Discarding needs strong evidence of noise; ambiguous or quiet audio is kept.
A classifier that is unsure about every label often means an
out-of-vocabulary sound the mode is after.

All functions here are pure and can be called in any order or in parallel.
"""

from collections.abc import Iterable

from .config import Policy
from .models import ClassificationResult, Decision, ReasonCode, Verdict


def decide(chunk_index: int, classification: ClassificationResult, policy: Policy) -> Verdict:
    """Decide whether to keep one chunk.

    Args:
        chunk_index: Index of the chunk
        classification: Ranked labels for the chunk
        policy: Run policy

    Returns:
        Verdict with the rule that fired and the entry that triggered it

    Raises:
        MalformedClassification: If the classification is empty, unranked or
            has scores outside [0, 1]
    """
    classification.validate(chunk_index)

    for entry in classification:
        if entry.label in policy.blacklist_labels and entry.score >= policy.blacklist_threshold:
            return Verdict(chunk_index, Decision.DISCARD, ReasonCode.BLACKLIST_HIT, entry.label, entry.score)

    for entry in classification:
        if entry.label in policy.target_labels and entry.score >= policy.target_threshold:
            return Verdict(chunk_index, Decision.KEEP, ReasonCode.TARGET_HIT, entry.label, entry.score)

    top = classification.top
    if policy.low_confidence_enabled and classification.max_score < policy.low_confidence_threshold:
        return Verdict(chunk_index, Decision.KEEP, ReasonCode.LOW_CONFIDENCE, top.label, top.score)

    # Top-1 entry is informational only
    return Verdict(chunk_index, Decision.DISCARD, ReasonCode.NO_MATCH, top.label, top.score)


def decide_all(classifications: Iterable[ClassificationResult], policy: Policy) -> list[Verdict]:
    """Decide an index-ordered sequence of classifications.

    Args:
        classifications: One result per chunk, chunk 0 first
        policy: Run policy

    Returns:
        List of verdicts in chunk-index order
    """
    return [decide(i, classification, policy) for i, classification in enumerate(classifications)]
