"""
Tests for the Stripe payment processor adapter.

Stripe is never reached: the SDK entry points are patched per test.
"""

from unittest.mock import patch

import pytest
import stripe

from settlement.core.exceptions import PaymentProcessorError, ProcessorErrorKind, ValidationException
from settlement.services.payment_processor import PaymentProcessor


@pytest.fixture
def processor():
    return PaymentProcessor("sk_test_123", currency="nok")


class TestCapture:
    @patch("stripe.PaymentIntent.capture")
    def test_capture_uses_booking_idempotency_key(self, mock_capture, processor):
        mock_capture.return_value = {"id": "pi_1", "latest_charge": "ch_1", "amount_received": 100000}

        result = processor.capture("01BOOKING", "pi_1")

        mock_capture.assert_called_once_with(
            "pi_1", idempotency_key="capture:01BOOKING", api_key="sk_test_123"
        )
        assert result.external_ref == "ch_1"
        assert result.amount_received == 100000
        assert result.already_captured is False

    @patch("stripe.PaymentIntent.retrieve")
    @patch("stripe.PaymentIntent.capture")
    def test_already_captured_counts_as_success(self, mock_capture, mock_retrieve, processor):
        mock_capture.side_effect = stripe.InvalidRequestError(
            "This PaymentIntent could not be captured because it has already been captured.",
            None,
        )
        mock_retrieve.return_value = {"id": "pi_1", "charges": {"data": [{"id": "ch_earlier"}]}}

        result = processor.capture("01BOOKING", "pi_1")

        mock_retrieve.assert_called_once_with("pi_1", api_key="sk_test_123")
        assert result.already_captured is True
        assert result.external_ref == "ch_earlier"

    @patch("stripe.PaymentIntent.capture")
    def test_missing_intent_is_not_found(self, mock_capture, processor):
        mock_capture.side_effect = stripe.InvalidRequestError(
            "No such payment_intent: 'pi_gone'", "intent", code="resource_missing"
        )

        with pytest.raises(PaymentProcessorError) as exc_info:
            processor.capture("01BOOKING", "pi_gone")

        assert exc_info.value.kind is ProcessorErrorKind.NOT_FOUND
        assert exc_info.value.retryable is False

    @patch("stripe.PaymentIntent.capture")
    def test_network_failure_is_retryable_provider_error(self, mock_capture, processor):
        mock_capture.side_effect = stripe.APIConnectionError("connection reset")

        with pytest.raises(PaymentProcessorError) as exc_info:
            processor.capture("01BOOKING", "pi_1")

        assert exc_info.value.kind is ProcessorErrorKind.PROVIDER_ERROR
        assert exc_info.value.retryable is True
        assert exc_info.value.code == "PAYMENT_PROVIDER_ERROR"

    @patch("stripe.PaymentIntent.capture")
    def test_bad_api_key_is_not_configured(self, mock_capture, processor):
        mock_capture.side_effect = stripe.AuthenticationError("Invalid API Key provided")

        with pytest.raises(PaymentProcessorError) as exc_info:
            processor.capture("01BOOKING", "pi_1")

        assert exc_info.value.kind is ProcessorErrorKind.NOT_CONFIGURED

    def test_booking_without_intent_is_not_found(self, processor):
        with pytest.raises(PaymentProcessorError) as exc_info:
            processor.capture("01BOOKING", None)
        assert exc_info.value.kind is ProcessorErrorKind.NOT_FOUND

    @patch("stripe.PaymentIntent.capture")
    def test_unconfigured_processor_never_calls_stripe(self, mock_capture):
        with pytest.raises(PaymentProcessorError) as exc_info:
            PaymentProcessor("").capture("01BOOKING", "pi_1")

        assert exc_info.value.kind is ProcessorErrorKind.NOT_CONFIGURED
        mock_capture.assert_not_called()


class TestTransfer:
    @patch("stripe.Transfer.create")
    @patch("stripe.Transfer.list")
    def test_creates_grouped_idempotent_transfer(self, mock_list, mock_create, processor):
        mock_list.return_value = {"data": []}
        mock_create.return_value = {"id": "tr_1"}

        result = processor.transfer(
            "pi_1",
            "01BOOKING",
            destination_account="acct_stylist",
            amount_minor=80000,
            source_transaction="ch_1",
        )

        mock_list.assert_called_once_with(
            transfer_group="booking:01BOOKING", limit=1, api_key="sk_test_123"
        )
        kwargs = mock_create.call_args.kwargs
        assert kwargs["amount"] == 80000
        assert kwargs["currency"] == "nok"
        assert kwargs["destination"] == "acct_stylist"
        assert kwargs["transfer_group"] == "booking:01BOOKING"
        assert kwargs["source_transaction"] == "ch_1"
        assert kwargs["idempotency_key"] == "payout:01BOOKING"
        assert kwargs["metadata"] == {"booking_id": "01BOOKING", "payment_intent_id": "pi_1"}
        assert result.transfer_id == "tr_1"
        assert result.replayed is False

    @patch("stripe.Transfer.create")
    @patch("stripe.Transfer.list")
    def test_existing_transfer_in_group_is_reused(self, mock_list, mock_create, processor):
        mock_list.return_value = {"data": [{"id": "tr_earlier"}]}

        result = processor.transfer(
            "pi_1", "01BOOKING", destination_account="acct_stylist", amount_minor=80000
        )

        mock_create.assert_not_called()
        assert result.transfer_id == "tr_earlier"
        assert result.replayed is True

    @patch("stripe.Transfer.list")
    def test_missing_destination_is_not_configured(self, mock_list, processor):
        with pytest.raises(PaymentProcessorError) as exc_info:
            processor.transfer("pi_1", "01BOOKING", destination_account=None, amount_minor=80000)

        assert exc_info.value.kind is ProcessorErrorKind.NOT_CONFIGURED
        mock_list.assert_not_called()

    @patch("stripe.Transfer.list")
    def test_non_positive_amount_is_refused(self, mock_list, processor):
        with pytest.raises(ValidationException) as exc_info:
            processor.transfer("pi_1", "01BOOKING", destination_account="acct_1", amount_minor=0)

        assert exc_info.value.details["amount_minor"] == 0
        mock_list.assert_not_called()

    @patch("stripe.Transfer.create")
    @patch("stripe.Transfer.list")
    def test_stripe_failure_is_translated(self, mock_list, mock_create, processor):
        mock_list.return_value = {"data": []}
        mock_create.side_effect = stripe.InvalidRequestError(
            "Insufficient funds in Stripe account", None, code="balance_insufficient"
        )

        with pytest.raises(PaymentProcessorError) as exc_info:
            processor.transfer("pi_1", "01BOOKING", destination_account="acct_1", amount_minor=100)

        assert exc_info.value.kind is ProcessorErrorKind.PROVIDER_ERROR
        assert exc_info.value.details["stripe_code"] == "balance_insufficient"
