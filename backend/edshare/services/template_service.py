# backend/edshare/services/template_service.py
"""
Template rendering service for the EdShare platform.

Provides centralized template rendering using Jinja2 for notification
emails, with the brand name and client URL always in context.
"""

from datetime import date, datetime, time
from decimal import Decimal
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from jinja2 import Environment, FileSystemLoader, TemplateNotFound

from ..core.config import settings
from ..core.exceptions import ServiceException

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"


def currency(value: Union[Decimal, float, int, None]) -> str:
    """Format an amount in rupees with two decimals."""
    if value is None:
        return ""
    return f"₹{Decimal(str(value)):,.2f}"


def format_date(value: Union[date, datetime, str], format_str: str = "%a %d %b %Y") -> str:
    if isinstance(value, str):
        return value
    return value.strftime(format_str)


def format_time(value: Union[time, datetime, str], format_str: str = "%H:%M") -> str:
    if isinstance(value, str):
        return value
    return value.strftime(format_str)


class TemplateService:
    """
    Centralized template rendering service using Jinja2.

    Uses dependency injection - no singleton.
    """

    def __init__(self, template_dir: Optional[Path] = None):
        self.template_dir = template_dir or TEMPLATE_DIR
        self.env = Environment(
            loader=FileSystemLoader(self.template_dir),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["currency"] = currency
        self.env.filters["format_date"] = format_date
        self.env.filters["format_time"] = format_time
        self.logger = logging.getLogger(self.__class__.__name__)

    def get_common_context(self) -> Dict[str, Any]:
        return {
            "brand_name": settings.brand_name,
            "client_url": settings.client_url.rstrip("/"),
            "current_year": datetime.now().year,
        }

    def render_template(self, template_name: str, context: Optional[Dict[str, Any]] = None) -> str:
        """
        Render a template with the common context merged in.

        Raises:
            ServiceException: If the template does not exist
        """
        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound as exc:
            self.logger.error(f"Template not found: {template_name}")
            raise ServiceException(f"Email template error: {template_name}") from exc
        return template.render({**self.get_common_context(), **(context or {})})

    def render_string(self, template_string: str, context: Optional[Dict[str, Any]] = None) -> str:
        """Render an inline template (used for SMS bodies)."""
        template = self.env.from_string(template_string)
        return template.render({**self.get_common_context(), **(context or {})})
