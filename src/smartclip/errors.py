"""Exception hierarchy for the chunk selection pipeline.

All exceptions inherit from SmartClipError so the CLI can handle them at
one boundary while keeping the specific failure context.
"""


class SmartClipError(Exception):
    """Base exception for all SmartClip errors."""

    def __init__(self, message: str, chunk_index: int | None = None) -> None:
        self.chunk_index = chunk_index
        super().__init__(message)

    def __str__(self) -> str:
        if self.chunk_index is not None:
            return f"[chunk={self.chunk_index}] {super().__str__()}"
        return super().__str__()


class MalformedClassification(SmartClipError):
    """Raised when a chunk's classification is empty, unranked or out of range."""


class InvalidPolicyConfiguration(SmartClipError):
    """Raised before any chunk is processed when the policy cannot be used."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class EmptyResult(SmartClipError):
    """Raised when no chunk survives the decision policy and continuity filter.

    This is an expected outcome for arbitrary input audio, not a crash.
    """

    def __init__(self, message: str = "No matching content found", total_chunks: int = 0) -> None:
        self.total_chunks = total_chunks
        super().__init__(message)


class AuditWriteFailure(SmartClipError):
    """Raised when recording a chunk in the audit trail fails."""

    def __init__(
        self,
        message: str,
        chunk_index: int | None = None,
        path: str | None = None,
    ) -> None:
        self.path = path
        super().__init__(message, chunk_index)


class ClassifierError(SmartClipError):
    """Raised when the external classifier fails for a chunk. Never retried."""
