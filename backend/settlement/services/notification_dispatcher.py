# backend/settlement/services/notification_dispatcher.py
"""
Notification fan-out for settlement transitions.

For each transition (capture, payout, completion) the dispatcher works out
the recipients, checks each one's preference for the relevant category,
renders the email and sends it. Delivery is best-effort: the state
transition has already been committed when the dispatcher runs, failures
are logged and counted, nothing is retried and nothing is raised.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Any, Dict, List, Optional, Protocol

from ..models.booking import Booking
from ..models.profile import Profile
from ..monitoring.prometheus_metrics import prometheus_metrics
from .email_subjects import TRIAL_SESSION_PREFIX, EmailSubject
from .fee_calculator import FeeBreakdown
from .notification_preference_service import NotificationPreferenceService
from .template_registry import TemplateRegistry
from .template_service import TemplateService, format_norwegian_date, to_display_time

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Any: ...


class TransitionKind(str, Enum):
    CAPTURE = "capture"
    PAYOUT = "payout"
    COMPLETION = "completion"


class DeliveryStatus(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class DeliveryOutcome:
    role: str
    profile_id: Optional[str]
    status: DeliveryStatus
    error: Optional[str] = None


@dataclass
class DispatchReport:
    booking_id: str
    outcomes: List[DeliveryOutcome] = field(default_factory=list)

    @property
    def sent(self) -> int:
        return sum(1 for o in self.outcomes if o.status is DeliveryStatus.SENT)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status is DeliveryStatus.FAILED)

    @property
    def errors(self) -> List[str]:
        return [
            f"Booking {self.booking_id} {o.role} email: {o.error}"
            for o in self.outcomes
            if o.status is DeliveryStatus.FAILED
        ]


@dataclass(frozen=True)
class _Notice:
    role: str
    recipient: Optional[Profile]
    category: str
    subject: str
    template: TemplateRegistry
    context: Dict[str, Any]


class NotificationDispatcher:
    """Sends the customer and stylist emails for one settled booking."""

    def __init__(
        self,
        preference_service: NotificationPreferenceService,
        email_service: EmailSender,
        template_service: Optional[TemplateService] = None,
        *,
        default_service_name: str = "Skjønnhetstjeneste",
    ):
        self.preference_service = preference_service
        self.email_service = email_service
        self.template_service = template_service or TemplateService()
        self.default_service_name = default_service_name
        self.logger = logging.getLogger(self.__class__.__name__)

    def service_name(self, booking: Booking) -> str:
        """First booked service title, prefixed for trial sessions."""
        titles = booking.service_titles
        name = titles[0] if titles else self.default_service_name
        if booking.is_trial_session:
            name = f"{TRIAL_SESSION_PREFIX}{name}"
        return name

    def dispatch(
        self,
        kind: TransitionKind,
        booking: Booking,
        *,
        external_ref: Optional[str] = None,
        fees: Optional[FeeBreakdown] = None,
        now: Optional[datetime] = None,
        dev_mode: bool = False,
        log_prefix: str = "",
    ) -> DispatchReport:
        """Notify each recipient of ``booking`` about a completed ``kind`` transition."""
        report = DispatchReport(booking_id=booking.id)
        try:
            notices = self._build_notices(kind, booking, external_ref, fees, now)
        except Exception as e:
            self.logger.error(
                f"{log_prefix} Could not prepare {kind.value} notifications for booking {booking.id}: {e}"
            )
            report.outcomes.append(DeliveryOutcome("all", None, DeliveryStatus.FAILED, str(e)))
            prometheus_metrics.record_notification(kind.value, DeliveryStatus.FAILED.value)
            return report

        for notice in notices:
            outcome = self._deliver(notice, dev_mode=dev_mode, log_prefix=log_prefix)
            report.outcomes.append(outcome)
            prometheus_metrics.record_notification(kind.value, outcome.status.value)
        return report

    def _deliver(self, notice: _Notice, *, dev_mode: bool, log_prefix: str) -> DeliveryOutcome:
        recipient = notice.recipient
        profile_id = recipient.id if recipient is not None else None
        if recipient is None or not recipient.email:
            return DeliveryOutcome(notice.role, profile_id, DeliveryStatus.SKIPPED)

        try:
            if not self.preference_service.should_receive_notification(recipient.id, notice.category):
                self.logger.info(
                    f"{log_prefix} {notice.role} {recipient.id} opted out of {notice.category}"
                )
                return DeliveryOutcome(notice.role, profile_id, DeliveryStatus.SKIPPED)

            html = self.template_service.render_template(notice.template, notice.context)
            self.email_service.send_email(
                to_email=recipient.email,
                subject=EmailSubject.with_prefix(notice.subject, dev_mode=dev_mode),
                html_content=html,
            )
        except Exception as e:
            self.logger.error(
                f"{log_prefix} Failed to send {notice.role} email to {recipient.email}: {e}"
            )
            return DeliveryOutcome(notice.role, profile_id, DeliveryStatus.FAILED, str(e))

        self.logger.info(f"{log_prefix} Sent {notice.role} notification to {recipient.email}")
        return DeliveryOutcome(notice.role, profile_id, DeliveryStatus.SENT)

    def _build_notices(
        self,
        kind: TransitionKind,
        booking: Booking,
        external_ref: Optional[str],
        fees: Optional[FeeBreakdown],
        now: Optional[datetime],
    ) -> List[_Notice]:
        customer, stylist = booking.customer, booking.stylist
        service_name = self.service_name(booking)
        base = {
            "booking_id": booking.id,
            "service_name": service_name,
            "service_date": format_norwegian_date(booking.start_time),
            "transaction_id": external_ref,
            **self._amounts(booking, fees),
        }
        customer_ctx = {**base, "recipient_name": _name(customer, "Kunde")}
        stylist_ctx = {**base, "recipient_name": _name(stylist, "Stylist")}

        if kind is TransitionKind.CAPTURE:
            return [
                _Notice(
                    "customer",
                    customer,
                    "booking.confirmations",
                    EmailSubject.payment_confirmed(service_name),
                    TemplateRegistry.PAYMENT_CONFIRMED_CUSTOMER,
                    customer_ctx,
                ),
                _Notice(
                    "stylist",
                    stylist,
                    "stylist.paymentNotifications",
                    EmailSubject.payment_received(service_name),
                    TemplateRegistry.PAYMENT_RECEIVED_STYLIST,
                    stylist_ctx,
                ),
            ]

        if kind is TransitionKind.PAYOUT:
            payout_date = format_norwegian_date(now or datetime.now(timezone.utc))
            return [
                _Notice(
                    "stylist",
                    stylist,
                    "stylist.paymentNotifications",
                    EmailSubject.payout_processed(service_name),
                    TemplateRegistry.PAYOUT_PROCESSED_STYLIST,
                    {**stylist_ctx, "payout_date": payout_date},
                ),
                _Notice(
                    "customer",
                    customer,
                    "booking.statusUpdates",
                    EmailSubject.service_completed(
                        service_name, is_trial_session=bool(booking.is_trial_session)
                    ),
                    TemplateRegistry.SERVICE_COMPLETED_CUSTOMER,
                    customer_ctx,
                ),
            ]

        titles = booking.service_titles
        first_title = titles[0] if titles else "Booking"
        display_name = f"{first_title} +{len(titles) - 1} til" if len(titles) > 1 else first_title
        start = to_display_time(booking.start_time)
        end = to_display_time(booking.end_time)
        completion_ctx = {
            **base,
            "service_name": display_name,
            "booking_time": f"{start:%H:%M} - {end:%H:%M}",
            "customer_name": _name(customer, "Kunde"),
            "stylist_name": _name(stylist, "Stylisten"),
        }
        return [
            _Notice(
                "customer",
                customer,
                "booking.statusUpdates",
                EmailSubject.booking_completed_customer(first_title),
                TemplateRegistry.BOOKING_COMPLETED,
                {**completion_ctx, "recipient_type": "customer", "recipient_name": _name(customer, "Kunde")},
            ),
            _Notice(
                "stylist",
                stylist,
                "booking.statusUpdates",
                EmailSubject.booking_completed_stylist(first_title),
                TemplateRegistry.BOOKING_COMPLETED,
                {**completion_ctx, "recipient_type": "stylist", "recipient_name": _name(stylist, "Stylist")},
            ),
        ]

    @staticmethod
    def _amounts(booking: Booking, fees: Optional[FeeBreakdown]) -> Dict[str, Any]:
        if fees is not None:
            return {
                "total_amount": fees.final_amount,
                "platform_fee": fees.platform_fee,
                "stylist_payout": fees.stylist_payout,
            }
        payment = booking.payment
        if payment is None:
            return {"total_amount": None, "platform_fee": None, "stylist_payout": None}
        return {
            "total_amount": payment.final_amount,
            "platform_fee": payment.platform_fee,
            "stylist_payout": payment.stylist_payout,
        }


def _name(profile: Optional[Profile], fallback: str) -> str:
    if profile is None or not profile.full_name:
        return fallback
    return profile.full_name
