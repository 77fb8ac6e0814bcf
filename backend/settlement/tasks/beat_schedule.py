# backend/settlement/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for the settlement batches.

All three batches run hourly, staggered so a booking can move through
auto-complete and payout in consecutive slots:

- :00 capture payments for bookings starting 24-27 hours from now
- :15 auto-complete bookings that ended more than an hour ago
- :30 pay out completed, captured bookings
"""

from typing import Any

from celery.schedules import crontab

CELERYBEAT_SCHEDULE: dict[str, dict[str, Any]] = {
    "capture-upcoming-payments": {
        "task": "settlement.tasks.settlement_tasks.capture_upcoming_payments",
        "schedule": crontab(minute=0),
        "options": {
            "queue": "payments",
            "priority": 9,
        },
    },
    "auto-complete-bookings": {
        "task": "settlement.tasks.settlement_tasks.auto_complete_bookings",
        "schedule": crontab(minute=15),
        "options": {
            "queue": "payments",
            "priority": 7,
        },
    },
    "process-pending-payouts": {
        "task": "settlement.tasks.settlement_tasks.process_pending_payouts",
        "schedule": crontab(minute=30),
        "options": {
            "queue": "payments",
            "priority": 8,
        },
    },
}

# Environment-specific overrides
SCHEDULE_CONFIG: dict[str, dict[str, dict[str, Any]]] = {
    "development": {
        # Local workers usually run a single default queue
        name: {**entry, "options": {**entry["options"], "queue": "celery"}}
        for name, entry in CELERYBEAT_SCHEDULE.items()
    },
    "testing": {},
}


def get_beat_schedule(environment: str = "production") -> dict[str, dict[str, Any]]:
    """
    Get the beat schedule for the specified environment.

    Args:
        environment: The environment name (production, development, testing)

    Returns:
        Mapping of task name to Celery beat configuration dict
    """
    base: dict[str, dict[str, Any]] = dict(CELERYBEAT_SCHEDULE)
    overrides = SCHEDULE_CONFIG.get(environment)
    if overrides:
        base.update(overrides)
    return base
