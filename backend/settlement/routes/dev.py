# backend/settlement/routes/dev.py
"""
Manual batch triggers for development and staging.

They run the same batches as the scheduler without a time window, so every
eligible booking is picked up, and prefix email subjects with ``[DEV] ``.
Disabled in production.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..api.dependencies import get_batch_service, require_manual_trigger
from ..services.batch_processing_service import BatchProcessingService
from .cron import summary_response

router = APIRouter(tags=["dev"], dependencies=[Depends(require_manual_trigger)])


@router.post("/trigger-payment-processing")
def trigger_payment_processing(
    service: BatchProcessingService = Depends(get_batch_service),
) -> JSONResponse:
    return summary_response(lambda: service.run_capture_batch(manual=True))


@router.post("/trigger-payout-processing")
def trigger_payout_processing(
    service: BatchProcessingService = Depends(get_batch_service),
) -> JSONResponse:
    return summary_response(lambda: service.run_payout_batch(manual=True))
