# backend/settlement/services/template_service.py
"""
Template rendering service for settlement emails.

Wraps a Jinja2 environment rooted at ``settlement/templates`` and registers
the Norwegian date and currency filters the email bodies use.
"""

from datetime import datetime, timezone
from decimal import Decimal
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union
from zoneinfo import ZoneInfo

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

from ..core.config import settings
from ..core.exceptions import ServiceException
from .base import BaseService
from .template_registry import TemplateRegistry

logger = logging.getLogger(__name__)

NORWEGIAN_MONTHS = (
    "januar",
    "februar",
    "mars",
    "april",
    "mai",
    "juni",
    "juli",
    "august",
    "september",
    "oktober",
    "november",
    "desember",
)

DISPLAY_TIMEZONE = ZoneInfo("Europe/Oslo")


def to_display_time(value: datetime) -> datetime:
    """Convert to Oslo time; naive values are taken to be UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(DISPLAY_TIMEZONE)


def format_norwegian_date(value: datetime) -> str:
    """Format as ``d. MMMM yyyy`` in Norwegian, e.g. ``5. mars 2026``."""
    local = to_display_time(value)
    return f"{local.day}. {NORWEGIAN_MONTHS[local.month - 1]} {local.year}"


def format_nok(value: Union[Decimal, int, float, None]) -> str:
    """Format an amount as ``1 234,50 kr``."""
    if value is None:
        return "-"
    formatted = f"{Decimal(str(value)):,.2f}"
    return formatted.replace(",", " ").replace(".", ",") + " kr"


class TemplateService:
    """Centralized template rendering using Jinja2."""

    def __init__(self, template_dir: Optional[Path] = None):
        template_dir = template_dir or Path(__file__).parent.parent / "templates"
        self.env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["nb_date"] = format_norwegian_date
        self.env.filters["nok"] = format_nok
        self.logger = logging.getLogger(self.__class__.__name__)

    def get_common_context(self) -> Dict[str, Any]:
        return {
            "brand_name": "Nabostylisten",
            "current_year": datetime.now(timezone.utc).year,
            "support_email": settings.from_email,
        }

    @BaseService.measure_operation("render_template")
    def render_template(
        self,
        template_name: Union[TemplateRegistry, str],
        context: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> str:
        """
        Render a template with the common context merged under ``context``.

        Raises:
            ServiceException: If the template does not exist or fails to render
        """
        name = template_name.value if isinstance(template_name, TemplateRegistry) else template_name
        full_context = self.get_common_context()
        full_context.update(context or {})
        full_context.update(kwargs)
        try:
            return self.env.get_template(name).render(**full_context)
        except TemplateNotFound:
            self.logger.error(f"Template not found: {name}")
            raise ServiceException(f"Email template not found: {name}")
