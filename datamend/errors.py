from __future__ import annotations

from typing import Any


class DatamendError(Exception):
    """Base class for errors raised by datamend."""


class ConfigError(DatamendError):
    pass


class LoadError(DatamendError):
    pass


class OperationError(DatamendError):
    """A cleaning operation payload could not be understood at all."""


class LinkageCancelled(DatamendError):
    """Raised when the host cancels a linkage run at a batch boundary.

    ``completed`` holds the per-row results of every batch that finished
    before cancellation, in dataset-A order.
    """

    def __init__(self, completed: list[Any], batches_done: int, batches_total: int, pairs_scored: int = 0) -> None:
        super().__init__(f"Linkage cancelled after {batches_done}/{batches_total} batches")
        self.completed = completed
        self.batches_done = batches_done
        self.batches_total = batches_total
        self.pairs_scored = pairs_scored
