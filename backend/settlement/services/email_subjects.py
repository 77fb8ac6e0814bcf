"""
Centralized email subject builders.

Keep subjects in code (not templates) for versioning and logging.
Bodies remain in Jinja templates.
"""

TRIAL_SESSION_PREFIX = "Prøvetime: "
DEV_SUBJECT_PREFIX = "[DEV] "


class EmailSubject:
    """Utility class with static builders for email subjects."""

    @staticmethod
    def payment_confirmed(service_name: str) -> str:
        return f"Betaling bekreftet - {service_name}"

    @staticmethod
    def payment_received(service_name: str) -> str:
        return f"Betaling mottatt - {service_name}"

    @staticmethod
    def payout_processed(service_name: str) -> str:
        return f"Utbetaling behandlet - {service_name}"

    @staticmethod
    def service_completed(service_name: str, *, is_trial_session: bool = False) -> str:
        if is_trial_session:
            return f"Prøvetime fullført - {service_name.replace(TRIAL_SESSION_PREFIX, '')}"
        return f"Tjeneste fullført - {service_name}"

    @staticmethod
    def booking_completed_customer(service_name: str) -> str:
        return f"Tjeneste fullført: {service_name}"

    @staticmethod
    def booking_completed_stylist(service_name: str) -> str:
        return f"Tjeneste automatisk fullført: {service_name}"

    @staticmethod
    def with_prefix(subject: str, *, dev_mode: bool) -> str:
        return f"{DEV_SUBJECT_PREFIX}{subject}" if dev_mode else subject
