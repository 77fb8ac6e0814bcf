# backend/settlement/routes/cron.py
"""
Scheduler endpoints for the settlement batches.

Each endpoint runs one batch synchronously and returns its summary:
200 when every eligible booking settled or was skipped, 207 when some
bookings failed, 500 when the eligible bookings could not be fetched.
"""

import logging
from typing import Callable

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..api.dependencies import get_batch_service, verify_cron_secret
from ..core.exceptions import BatchFetchException
from ..schemas.batch import BatchSummary
from ..services.batch_processing_service import BatchProcessingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["cron"], dependencies=[Depends(verify_cron_secret)])


def summary_response(run: Callable[[], BatchSummary]) -> JSONResponse:
    """Run a batch and map its outcome to a status code."""
    try:
        summary = run()
    except BatchFetchException as e:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": e.message},
        )
    return JSONResponse(
        status_code=status.HTTP_200_OK if summary.success else status.HTTP_207_MULTI_STATUS,
        content=summary.to_response(),
    )


@router.post("/payment-processing")
def run_payment_processing(
    service: BatchProcessingService = Depends(get_batch_service),
) -> JSONResponse:
    """Capture payments for bookings starting 24-27 hours from now."""
    return summary_response(service.run_capture_batch)


@router.post("/payout-processing")
def run_payout_processing(
    service: BatchProcessingService = Depends(get_batch_service),
) -> JSONResponse:
    """Pay out completed bookings that have settled."""
    return summary_response(service.run_payout_batch)


@router.post("/auto-complete-bookings")
def run_auto_complete(
    service: BatchProcessingService = Depends(get_batch_service),
) -> JSONResponse:
    return summary_response(service.run_auto_complete_batch)
