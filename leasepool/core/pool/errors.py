"""Error kinds raised by the lease pool engine.

Running out of allocatable items is not an error: acquire_one() returns
None for that case.
"""

from typing import Any, Optional


class PoolError(Exception):
    """Base exception for lease pool operations"""
    pass


class StoreUnavailable(PoolError):
    """The backing store failed (connectivity, locking, I/O); the operation was rolled back"""
    pass


class PartialBatchFailure(PoolError):
    """An ingest batch failed and was rolled back.

    Batches committed before the failing one stay committed.

    Attributes:
        batch_index: Zero-based index of the failed batch
        inserted_count: Rows inserted by the batches that committed
    """

    def __init__(self, batch_index: int, inserted_count: int, cause: Optional[BaseException] = None):
        self.batch_index = batch_index
        self.inserted_count = inserted_count
        self.cause = cause
        super().__init__(
            f"Ingest batch {batch_index} failed after {inserted_count} rows were committed: {cause}"
        )


class ValidationRejected(PoolError, ValueError):
    """A value failed the format check"""

    def __init__(self, value: Any, message: Optional[str] = None):
        self.value = value
        super().__init__(message or f"Invalid value: {value!r}")
