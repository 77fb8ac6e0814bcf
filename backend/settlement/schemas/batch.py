"""Response schemas for batch runs."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List

from pydantic import Field

from .base import CamelModel


class BatchType(str, Enum):
    CAPTURE = "capture"
    PAYOUT = "payout"
    AUTO_COMPLETE = "auto_complete"


class BatchSummary(CamelModel, ABC):
    """
    Outcome of one batch run.

    ``bookings_processed`` is the size of the eligible set; every eligible
    booking ends up counted exactly once as processed, skipped or an error.
    """

    success: bool
    bookings_processed: int = 0
    emails_sent: int = 0
    errors: int = 0
    skipped: int = 0
    error_details: List[str] = Field(default_factory=list)
    duration_ms: int = 0
    message: str = ""

    @property
    @abstractmethod
    def processed(self) -> int:
        """Bookings this run advanced, under the batch-specific name."""

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class CaptureBatchSummary(BatchSummary):
    payments_processed: int = 0

    @property
    def processed(self) -> int:
        return self.payments_processed


class PayoutBatchSummary(BatchSummary):
    payouts_processed: int = 0

    @property
    def processed(self) -> int:
        return self.payouts_processed


class CompletionBatchSummary(BatchSummary):
    bookings_completed: int = 0

    @property
    def processed(self) -> int:
        return self.bookings_completed

