"""Per-run progress reporting.

Each run receives its own callback, so repeated or concurrent runs never
share progress state.
"""

from collections.abc import Callable
from dataclasses import dataclass

from tqdm import tqdm


@dataclass(frozen=True)
class ProgressEvent:
    """Progress of one pipeline stage."""

    stage: str
    current: int
    total: int

    @property
    def percentage(self) -> int:
        return round(100 * self.current / self.total) if self.total > 0 else 0


ProgressCallback = Callable[[ProgressEvent], None]


def null_progress(event: ProgressEvent) -> None:
    """Ignore progress events."""


class TqdmProgress:
    """Render progress events as one tqdm bar per stage."""

    def __init__(self, disable: bool = False):
        self.disable = disable
        self._bar: tqdm | None = None
        self._stage: str | None = None

    def __call__(self, event: ProgressEvent) -> None:
        if event.stage != self._stage:
            self.close()
            self._stage = event.stage
            self._bar = tqdm(total=event.total, desc=event.stage, disable=self.disable)

        self._bar.n = event.current
        self._bar.refresh()

        if event.current >= event.total:
            self.close()

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None
            self._stage = None

    def __enter__(self) -> "TqdmProgress":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
