"""Data model shared by the decision engine, continuity filter and audit trail."""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, replace
from enum import Enum

from .errors import MalformedClassification


@dataclass(frozen=True)
class LabelScore:
    """One (label, score) entry of a ranked classification."""

    label: str
    score: float


@dataclass(frozen=True)
class ClassificationResult:
    """Ranked classifier output for one chunk, highest score first.

    Rank order is meaningful: entry 0 is the top-1 label.
    """

    entries: tuple[LabelScore, ...]

    @classmethod
    def from_pairs(
        cls, pairs: Iterable[tuple[str, float] | Mapping[str, object] | LabelScore]
    ) -> "ClassificationResult":
        """Build a result from (label, score) tuples or {"label", "score"} dicts.

        Args:
            pairs: Entries in rank order

        Returns:
            ClassificationResult preserving the given order
        """
        entries = []
        for pair in pairs:
            if isinstance(pair, LabelScore):
                entries.append(pair)
            elif isinstance(pair, Mapping):
                entries.append(LabelScore(str(pair["label"]), float(pair["score"])))
            else:
                label, score = pair
                entries.append(LabelScore(str(label), float(score)))
        return cls(tuple(entries))

    def __iter__(self) -> Iterator[LabelScore]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def top(self) -> LabelScore:
        return self.entries[0]

    @property
    def max_score(self) -> float:
        return max(entry.score for entry in self.entries)

    def validate(self, chunk_index: int | None = None) -> None:
        """Check the result is non-empty, ranked descending and within [0, 1].

        Raises:
            MalformedClassification: If any check fails
        """
        if not self.entries:
            raise MalformedClassification("Classification result is empty", chunk_index)

        previous = None
        for rank, entry in enumerate(self.entries):
            if not 0.0 <= entry.score <= 1.0:
                raise MalformedClassification(
                    f"Score {entry.score} for '{entry.label}' is outside [0, 1]",
                    chunk_index,
                )
            if previous is not None and entry.score > previous:
                raise MalformedClassification(
                    f"Classification is not rank-ordered at rank {rank} ('{entry.label}')",
                    chunk_index,
                )
            previous = entry.score

    def to_list(self, limit: int | None = None) -> list[dict]:
        entries = self.entries if limit is None else self.entries[:limit]
        return [{"label": e.label, "score": e.score} for e in entries]


class Decision(str, Enum):
    KEEP = "KEEP"
    DISCARD = "DISCARD"


class ReasonCode(str, Enum):
    """Which policy rule produced a verdict."""

    BLACKLIST_HIT = "BLACKLIST_HIT"
    TARGET_HIT = "TARGET_HIT"
    LOW_CONFIDENCE = "LOW_CONFIDENCE"
    NO_MATCH = "NO_MATCH"
    # Set only by the continuity filter on a downgraded KEEP
    SHORT_SEGMENT = "SHORT_SEGMENT"


@dataclass(frozen=True)
class Verdict:
    """Keep/discard outcome plus rationale for one chunk.

    Attributes:
        chunk_index: Zero-based index of the chunk, never changed after creation
        decision: KEEP or DISCARD
        reason: Policy rule that produced the decision
        triggering_label: Label of the entry that fired the rule, if any
        triggering_score: Score of that entry, if any
    """

    chunk_index: int
    decision: Decision
    reason: ReasonCode
    triggering_label: str | None = None
    triggering_score: float | None = None

    @property
    def is_keep(self) -> bool:
        return self.decision is Decision.KEEP

    def with_decision(self, decision: Decision, reason: ReasonCode) -> "Verdict":
        """Copy with only decision and reason changed."""
        return replace(self, decision=decision, reason=reason)

    def describe(self) -> str:
        """Human-readable rationale, e.g. "Target hit: Kiss (30.0000%)"."""
        detail = ""
        if self.triggering_label is not None and self.triggering_score is not None:
            detail = f"{self.triggering_label} ({self.triggering_score * 100:.4f}%)"

        if self.reason is ReasonCode.BLACKLIST_HIT:
            return f"Strong blacklist hit: {detail}"
        if self.reason is ReasonCode.TARGET_HIT:
            return f"Target hit: {detail}"
        if self.reason is ReasonCode.LOW_CONFIDENCE:
            return f"Low confidence (max: {detail})"
        if self.reason is ReasonCode.SHORT_SEGMENT:
            return f"Isolated keep run below minimum length, was: {detail or 'unknown'}"
        return f"No target label, max confidence: {detail}"


@dataclass(frozen=True)
class Segment:
    """A maximal run of consecutive KEEP chunk indices, inclusive on both ends."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def indices(self) -> range:
        return range(self.start, self.end + 1)

    def __contains__(self, index: object) -> bool:
        return isinstance(index, int) and self.start <= index <= self.end
