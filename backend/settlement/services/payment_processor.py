# backend/settlement/services/payment_processor.py
"""
Stripe adapter for the settlement batches.

The adapter is constructed with its own API key and passes it on every call,
so tests and callers can swap it for a fake without touching module state.

Every side-effecting call carries a deterministic idempotency key derived from
the booking id (``capture:<id>`` / ``payout:<id>``). Transfers are also grouped
under ``booking:<id>`` and looked up before creation, so a retry after a
crash between "transfer created" and "payout recorded" finds the existing
transfer instead of paying the stylist twice.

Failures are raised as PaymentProcessorError with a ProcessorErrorKind.
"""

from dataclasses import dataclass
import logging
from typing import Any, Optional

import stripe

from ..core.exceptions import PaymentProcessorError, ProcessorErrorKind, ValidationException
from .base import BaseService

logger = logging.getLogger(__name__)


def capture_idempotency_key(booking_id: str) -> str:
    return f"capture:{booking_id}"


def payout_idempotency_key(booking_id: str) -> str:
    return f"payout:{booking_id}"


def transfer_group_for(booking_id: str) -> str:
    return f"booking:{booking_id}"


@dataclass(frozen=True)
class CaptureResult:
    payment_intent_id: str
    external_ref: str
    amount_received: Optional[int] = None
    already_captured: bool = False


@dataclass(frozen=True)
class TransferResult:
    transfer_id: str
    replayed: bool = False


def _get(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if hasattr(obj, "get"):
        return obj.get(key)
    return getattr(obj, key, None)


def _charge_id_from_intent(intent: Any) -> Optional[str]:
    latest_charge = _get(intent, "latest_charge")
    if isinstance(latest_charge, str):
        return latest_charge
    if latest_charge is not None:
        return _get(latest_charge, "id")
    charges = _get(intent, "charges")
    data = _get(charges, "data") if charges is not None else None
    if data:
        return _get(data[0], "id")
    return None


class PaymentProcessor:
    """Capture and transfer operations against Stripe."""

    def __init__(self, api_key: str, *, currency: str = "nok"):
        self.api_key = api_key
        self.currency = currency
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _check_configured(self) -> None:
        if not self.configured:
            raise PaymentProcessorError(
                ProcessorErrorKind.NOT_CONFIGURED,
                "Stripe is not configured. Please check STRIPE_SECRET_KEY environment variable.",
            )

    @BaseService.measure_operation("stripe_capture")
    def capture(self, booking_id: str, payment_intent_id: Optional[str]) -> CaptureResult:
        """
        Capture the authorized payment for a booking.

        A PaymentIntent that Stripe reports as already captured counts as a
        success: the earlier attempt charged the customer, so the intent is
        retrieved to recover its charge reference.
        """
        self._check_configured()
        if not payment_intent_id:
            raise PaymentProcessorError(
                ProcessorErrorKind.NOT_FOUND,
                f"Booking {booking_id} has no payment intent to capture",
                details={"booking_id": booking_id},
            )

        try:
            intent = stripe.PaymentIntent.capture(
                payment_intent_id,
                idempotency_key=capture_idempotency_key(booking_id),
                api_key=self.api_key,
            )
            already_captured = False
        except stripe.InvalidRequestError as e:
            if "already been captured" not in str(e).lower():
                raise self._translate(e, booking_id, "capture")
            self.logger.info(
                f"Payment intent {payment_intent_id} for booking {booking_id} was already captured"
            )
            intent = self._retrieve_intent(booking_id, payment_intent_id)
            already_captured = True
        except stripe.StripeError as e:
            raise self._translate(e, booking_id, "capture")

        amount_received = _get(intent, "amount_received")
        return CaptureResult(
            payment_intent_id=payment_intent_id,
            external_ref=_charge_id_from_intent(intent) or payment_intent_id,
            amount_received=int(amount_received) if amount_received is not None else None,
            already_captured=already_captured,
        )

    @BaseService.measure_operation("stripe_transfer")
    def transfer(
        self,
        payment_intent_id: Optional[str],
        booking_id: str,
        *,
        destination_account: Optional[str],
        amount_minor: int,
        source_transaction: Optional[str] = None,
    ) -> TransferResult:
        """
        Transfer the stylist's share of a captured payment to their connected account.

        Args:
            payment_intent_id: Captured PaymentIntent (recorded in transfer metadata)
            booking_id: Booking being paid out; drives idempotency key and transfer group
            destination_account: Stylist's Stripe Connect account
            amount_minor: Amount in minor units (øre)
            source_transaction: Charge the transfer draws from, when known
        """
        self._check_configured()
        if not destination_account:
            raise PaymentProcessorError(
                ProcessorErrorKind.NOT_CONFIGURED,
                f"Stylist for booking {booking_id} has no connected Stripe account",
                details={"booking_id": booking_id},
            )
        if amount_minor <= 0:
            raise ValidationException(
                f"Refusing to transfer non-positive amount {amount_minor} for booking {booking_id}",
                details={"booking_id": booking_id, "amount_minor": amount_minor},
            )

        group = transfer_group_for(booking_id)
        try:
            existing = stripe.Transfer.list(transfer_group=group, limit=1, api_key=self.api_key)
            existing_data = _get(existing, "data") or []
            if existing_data:
                transfer_id = _get(existing_data[0], "id")
                self.logger.warning(
                    f"Transfer {transfer_id} already exists for booking {booking_id}; reusing it"
                )
                return TransferResult(transfer_id=transfer_id, replayed=True)

            params: dict[str, Any] = {
                "amount": amount_minor,
                "currency": self.currency,
                "destination": destination_account,
                "transfer_group": group,
                "metadata": {
                    "booking_id": booking_id,
                    "payment_intent_id": payment_intent_id or "",
                },
            }
            if source_transaction:
                params["source_transaction"] = source_transaction
            transfer = stripe.Transfer.create(
                **params,
                idempotency_key=payout_idempotency_key(booking_id),
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            raise self._translate(e, booking_id, "transfer")

        return TransferResult(transfer_id=_get(transfer, "id"))

    def _retrieve_intent(self, booking_id: str, payment_intent_id: str) -> Any:
        try:
            return stripe.PaymentIntent.retrieve(payment_intent_id, api_key=self.api_key)
        except stripe.StripeError as e:
            raise self._translate(e, booking_id, "retrieve")

    def _translate(
        self, error: stripe.StripeError, booking_id: str, operation: str
    ) -> PaymentProcessorError:
        code = getattr(error, "code", None)
        if isinstance(error, stripe.AuthenticationError):
            kind = ProcessorErrorKind.NOT_CONFIGURED
        elif isinstance(error, stripe.InvalidRequestError) and code == "resource_missing":
            kind = ProcessorErrorKind.NOT_FOUND
        else:
            kind = ProcessorErrorKind.PROVIDER_ERROR
        self.logger.error(f"Stripe {operation} failed for booking {booking_id} ({kind.value}): {error}")
        return PaymentProcessorError(
            kind,
            f"Stripe {operation} failed: {getattr(error, 'user_message', None) or str(error)}",
            details={"booking_id": booking_id, "stripe_code": code},
        )
