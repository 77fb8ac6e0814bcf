"""
Template registry for strongly-typed access to Jinja templates.

Use with TemplateService to avoid stringly-typed paths.
"""

from enum import Enum


class TemplateRegistry(str, Enum):
    PAYMENT_CONFIRMED_CUSTOMER = "email/settlement/payment_confirmed_customer.html"
    PAYMENT_RECEIVED_STYLIST = "email/settlement/payment_received_stylist.html"
    PAYOUT_PROCESSED_STYLIST = "email/settlement/payout_processed_stylist.html"
    SERVICE_COMPLETED_CUSTOMER = "email/settlement/service_completed_customer.html"
    BOOKING_COMPLETED = "email/settlement/booking_completed.html"
