"""Configuration and settings for the chunk selection pipeline.

Uses Pydantic Settings for type-safe configuration with environment variable support.
All thresholds and label sets are centralized here for easy tuning, and
resolved once per run into an immutable Policy.
"""

from dataclasses import dataclass
from pathlib import Path

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

from .chunks import MIN_CHUNK_DURATION
from .errors import InvalidPolicyConfiguration
from .labels import (
    BLACKLIST_LABELS,
    load_custom_blacklist,
    load_custom_modes,
    mark_label,
    resolve_mode,
)


@dataclass(frozen=True)
class Policy:
    """Immutable decision policy, constant for an entire run.

    Thresholds are inclusive lower bounds: a score equal to a threshold is a hit.

    Attributes:
        target_labels: Labels whose presence means the chunk is wanted.
        blacklist_labels: Labels whose strong presence overrides a keep.
        target_threshold: Minimum score for a target label to count as a hit.
        blacklist_threshold: Minimum score for a blacklist label to count as a hit.
            Intentionally high to avoid rejecting borderline content.
        low_confidence_threshold: If every score is below this, the chunk is kept.
        min_segment_length: Shortest run of kept chunks that survives the
            continuity filter.
        low_confidence_enabled: Whether the low-confidence fallback rule applies.
        mode: Name of the mode the target labels came from.
    """

    target_labels: frozenset[str]
    blacklist_labels: frozenset[str]
    target_threshold: float = 0.0001
    blacklist_threshold: float = 0.20
    low_confidence_threshold: float = 0.15
    min_segment_length: int = 3
    low_confidence_enabled: bool = True
    mode: str = "custom"

    def __post_init__(self) -> None:
        # Accept any iterable of labels but store frozensets
        object.__setattr__(self, "target_labels", frozenset(self.target_labels))
        object.__setattr__(self, "blacklist_labels", frozenset(self.blacklist_labels))

        if not self.target_labels:
            raise InvalidPolicyConfiguration(
                f"Target label set for mode '{self.mode}' is empty", field="target_labels"
            )
        for name in ("target_threshold", "blacklist_threshold", "low_confidence_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise InvalidPolicyConfiguration(f"{name} must be within [0, 1], got {value}", field=name)
        validate_min_segment_length(self.min_segment_length)

    def mark(self, label: str) -> str | None:
        return mark_label(label, self.target_labels, self.blacklist_labels)


def validate_min_segment_length(min_segment_length: int) -> None:
    """Raise InvalidPolicyConfiguration for a non-positive minimum run length."""
    if isinstance(min_segment_length, bool) or not isinstance(min_segment_length, int):
        raise InvalidPolicyConfiguration(
            f"min_segment_length must be an integer, got {min_segment_length!r}",
            field="min_segment_length",
        )
    if min_segment_length <= 0:
        raise InvalidPolicyConfiguration(
            f"min_segment_length must be positive, got {min_segment_length}",
            field="min_segment_length",
        )


class PipelineConfig(BaseSettings):
    """Main configuration for the chunk selection pipeline.

    Attributes:
        mode: Name of the target label set (see labels.MODES).
        target_threshold: Minimum target label score counted as a hit.
        blacklist_threshold: Minimum blacklist label score that forces a discard.
        low_confidence_threshold: Chunks whose best score is below this are kept.
        low_confidence_enabled: Enable the low-confidence fallback rule.
        min_segment_length: Minimum number of consecutive kept chunks.
        chunk_duration: Duration of one chunk in seconds.
        blacklist_labels: Labels that override a keep decision.
        modes_file: Optional JSON file with custom modes; a "blacklist" entry
            in it replaces blacklist_labels.
        audit_dir: Directory for kept/discarded buckets and the audit log.
    """

    mode: str = Field(default="licking", description="Target label set to search for")

    # Decision thresholds - inclusive lower bounds
    target_threshold: float = Field(
        default=0.0001,
        description="Min target label score to keep a chunk",
        ge=0.0,
        le=1.0,
    )
    blacklist_threshold: float = Field(
        default=0.20,
        description="Min blacklist label score to discard a chunk",
        ge=0.0,
        le=1.0,
    )
    low_confidence_threshold: float = Field(
        default=0.15,
        description="Keep chunks whose max score is below this",
        ge=0.0,
        le=1.0,
    )
    low_confidence_enabled: bool = Field(
        default=True,
        description="Keep chunks the classifier is unsure about",
    )

    # Continuity settings
    min_segment_length: int = Field(
        default=3,
        description="Min consecutive kept chunks to survive",
        gt=0,
    )
    chunk_duration: float = Field(
        default=1.0,
        description="Chunk duration (seconds)",
        ge=MIN_CHUNK_DURATION,
    )

    blacklist_labels: list[str] = Field(
        default_factory=lambda: list(BLACKLIST_LABELS),
        description="Labels that override a keep decision",
    )

    # Paths
    modes_file: Path | None = Field(
        default=None,
        description="JSON file with custom modes",
    )
    audit_dir: Path = Field(
        default=Path("output/audit"),
        description="Directory for the audit trail",
    )

    model_config = {"env_prefix": "SMARTCLIP_"}

    def to_policy(self) -> Policy:
        """Resolve the active mode and build the immutable run policy.

        Raises:
            InvalidPolicyConfiguration: If the mode is unknown or a value is invalid
        """
        custom_modes = None
        blacklist = self.blacklist_labels
        if self.modes_file:
            custom_modes = load_custom_modes(self.modes_file)
            # A blacklist in the modes file replaces the configured one
            file_blacklist = load_custom_blacklist(self.modes_file)
            if file_blacklist is not None:
                blacklist = file_blacklist

        return Policy(
            target_labels=resolve_mode(self.mode, custom_modes),
            blacklist_labels=frozenset(blacklist),
            target_threshold=self.target_threshold,
            blacklist_threshold=self.blacklist_threshold,
            low_confidence_threshold=self.low_confidence_threshold,
            min_segment_length=self.min_segment_length,
            low_confidence_enabled=self.low_confidence_enabled,
            mode=self.mode,
        )


def load_config(**overrides) -> PipelineConfig:
    """Build a PipelineConfig, reporting validation errors as policy errors.

    Args:
        **overrides: Field values taking precedence over environment variables

    Raises:
        InvalidPolicyConfiguration: If any value fails validation
    """
    try:
        return PipelineConfig(**overrides)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise InvalidPolicyConfiguration(
            f"Invalid configuration: {field}: {first.get('msg')}", field=field or None
        ) from e


# Default configuration instance
default_config = PipelineConfig()
