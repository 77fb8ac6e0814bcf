"""
Celery tasks for the settlement batches.

Each task opens its own session, runs one batch through the
BatchProcessingService and returns the summary. Per-booking failures are
already contained in the summary; the task is only retried when the run
could not list its eligible bookings.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Callable, List, ParamSpec, Protocol, TypedDict, TypeVar, cast

from celery.result import AsyncResult
from sqlalchemy.orm import Session

from ..core.exceptions import BatchFetchException
from ..monitoring.sentry_crons import monitor_if_configured
from ..schemas.batch import BatchSummary
from ..services.batch_processing_service import (
    BatchProcessingService,
    build_batch_processing_service,
)
from .celery_app import celery_app

P = ParamSpec("P")
R = TypeVar("R", covariant=True)


class TaskWrapper(Protocol[P, R]):
    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> R:
        ...

    delay: Callable[..., AsyncResult]
    apply_async: Callable[..., AsyncResult]


def typed_task(
    *task_args: Any, **task_kwargs: Any
) -> Callable[[Callable[P, R]], TaskWrapper[P, R]]:
    """Return a typed Celery task decorator for mypy."""

    return cast(
        Callable[[Callable[P, R]], TaskWrapper[P, R]],
        celery_app.task(*task_args, **task_kwargs),
    )


class BatchJobResults(TypedDict):
    success: bool
    processed: int
    bookings_processed: int
    emails_sent: int
    errors: int
    skipped: int
    error_details: List[str]
    processed_at: str


logger = logging.getLogger(__name__)

FETCH_RETRY_COUNTDOWN_SECONDS = 300


def _to_results(summary: BatchSummary, processed_at: datetime) -> BatchJobResults:
    return {
        "success": summary.success,
        "processed": summary.processed,
        "bookings_processed": summary.bookings_processed,
        "emails_sent": summary.emails_sent,
        "errors": summary.errors,
        "skipped": summary.skipped,
        "error_details": list(summary.error_details),
        "processed_at": processed_at.isoformat(),
    }


def _run_batch(
    task: Any,
    job_name: str,
    run: Callable[[BatchProcessingService, datetime], BatchSummary],
) -> BatchJobResults:
    from ..database import SessionLocal

    db: Session = SessionLocal()
    try:
        service = build_batch_processing_service(db)
        now = datetime.now(timezone.utc)
        summary = run(service, now)
        logger.info(
            f"{job_name} job completed: {summary.processed} processed, "
            f"{summary.skipped} skipped, {summary.errors} errors, "
            f"{summary.emails_sent} emails sent"
        )
        return _to_results(summary, now)
    except BatchFetchException as exc:
        logger.error(f"{job_name} job could not fetch bookings: {exc.message}")
        raise task.retry(exc=exc, countdown=FETCH_RETRY_COUNTDOWN_SECONDS)
    finally:
        db.close()


@typed_task(
    bind=True, max_retries=3, name="settlement.tasks.settlement_tasks.capture_upcoming_payments"
)
@monitor_if_configured("capture-upcoming-payments")
def capture_upcoming_payments(self: Any) -> BatchJobResults:
    """
    Capture payments for confirmed bookings starting 24-27 hours from now.

    Runs hourly at :00. The window is wider than the run interval so a
    missed run is picked up by the next one.
    """
    return _run_batch(
        self,
        "Capture",
        lambda service, now: service.run_capture_batch(now=now),
    )


@typed_task(
    bind=True, max_retries=3, name="settlement.tasks.settlement_tasks.auto_complete_bookings"
)
@monitor_if_configured("auto-complete-bookings")
def auto_complete_bookings(self: Any) -> BatchJobResults:
    """Mark confirmed bookings that ended over an hour ago as completed. Runs hourly at :15."""
    return _run_batch(
        self,
        "Auto-complete",
        lambda service, now: service.run_auto_complete_batch(now=now),
    )


@typed_task(
    bind=True, max_retries=3, name="settlement.tasks.settlement_tasks.process_pending_payouts"
)
@monitor_if_configured("process-pending-payouts")
def process_pending_payouts(self: Any) -> BatchJobResults:
    """Transfer the stylist's share for completed, captured bookings. Runs hourly at :30."""
    return _run_batch(
        self,
        "Payout",
        lambda service, now: service.run_payout_batch(now=now),
    )
