"""Sentry initialization for the API and the Celery worker."""

import logging
import os

import sentry_sdk
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from ..core.config import settings
from .sentry_crons import CRITICAL_BEAT_MONITOR_SLUGS

logger = logging.getLogger(__name__)

DEFAULT_TRACES_SAMPLE_RATE = 0.1
FAILED_REQUEST_STATUS_CODES = {*range(500, 600)}


def _resolve_release() -> str | None:
    for key in ("RENDER_GIT_COMMIT", "GIT_SHA", "COMMIT_SHA"):
        value = (os.getenv(key) or "").strip()
        if value:
            return value
    return None


def init_sentry() -> bool:
    dsn = (settings.sentry_dsn or "").strip()
    if not dsn:
        logger.debug("Sentry disabled: SENTRY_DSN not set")
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=settings.environment,
        release=_resolve_release(),
        integrations=[
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            FastApiIntegration(
                transaction_style="endpoint",
                failed_request_status_codes=FAILED_REQUEST_STATUS_CODES,
            ),
            # Settlement beats check in through monitor_if_configured instead
            CeleryIntegration(
                monitor_beat_tasks=True,
                exclude_beat_tasks=list(CRITICAL_BEAT_MONITOR_SLUGS),
            ),
        ],
        send_default_pii=False,
        traces_sample_rate=DEFAULT_TRACES_SAMPLE_RATE,
    )
    logger.info("Sentry initialized")
    return True
