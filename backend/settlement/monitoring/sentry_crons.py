from __future__ import annotations

from typing import Any, Callable, TypeVar, cast

from sentry_sdk.crons import monitor

_DEFAULT_MONITOR_LIMITS: dict[str, int] = {
    "checkin_margin": 10,  # minutes
    "max_runtime": 30,  # minutes
    "failure_issue_threshold": 2,
    "recovery_threshold": 1,
}

CRITICAL_BEAT_MONITOR_CONFIGS: dict[str, dict[str, Any]] = {
    "capture-upcoming-payments": {
        "schedule": {"type": "crontab", "value": "0 * * * *"},
        "timezone": "Europe/Oslo",
        **_DEFAULT_MONITOR_LIMITS,
    },
    "auto-complete-bookings": {
        "schedule": {"type": "crontab", "value": "15 * * * *"},
        "timezone": "Europe/Oslo",
        **_DEFAULT_MONITOR_LIMITS,
    },
    "process-pending-payouts": {
        "schedule": {"type": "crontab", "value": "30 * * * *"},
        "timezone": "Europe/Oslo",
        **_DEFAULT_MONITOR_LIMITS,
    },
}

CRITICAL_BEAT_MONITOR_SLUGS: tuple[str, ...] = tuple(CRITICAL_BEAT_MONITOR_CONFIGS.keys())

F = TypeVar("F", bound=Callable[..., Any])


def monitor_if_configured(slug: str) -> Callable[[F], F]:
    monitor_config = CRITICAL_BEAT_MONITOR_CONFIGS.get(slug)
    if monitor_config is None:

        def decorator(func: F) -> F:
            return func

        return decorator
    return cast(Callable[[F], F], monitor(monitor_slug=slug, monitor_config=monitor_config))
