from .batch import (
    BatchSummary,
    BatchType,
    CaptureBatchSummary,
    CompletionBatchSummary,
    PayoutBatchSummary,
)

__all__ = [
    "BatchSummary",
    "BatchType",
    "CaptureBatchSummary",
    "CompletionBatchSummary",
    "PayoutBatchSummary",
]
