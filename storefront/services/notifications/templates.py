"""
Notification template engine with Jinja2 for email rendering.

Each email is made of three templates sharing a base name:
``<name>_subject.txt``, ``<name>.html`` and ``<name>.txt``.
"""

from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
    TemplateNotFound,
    select_autoescape,
)

from storefront.core.logging import get_logger
from storefront.services.delivery.policy import format_currency

logger = get_logger(__name__)

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parents[2] / "templates" / "notifications"


class TemplateEngineError(Exception):
    """Base exception for template engine errors."""

    def __init__(self, message: str, template_name: Optional[str] = None):
        super().__init__(message)
        self.template_name = template_name


class TemplateNotFoundError(TemplateEngineError):
    """Raised when a template cannot be found."""


class TemplateRenderError(TemplateEngineError):
    """Raised when template rendering fails."""


class TemplateEngine:
    """Renders notification emails from the template directory."""

    def __init__(self, template_dir: Optional[Path] = None):
        self.template_dir = Path(template_dir or DEFAULT_TEMPLATE_DIR)

        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["currency"] = format_currency
        self.env.filters["date"] = _format_date

    def render_email(self, template_name: str, context: Dict[str, Any]) -> Dict[str, str]:
        """
        Render an email template set.

        Returns:
            Dictionary with 'subject', 'html_body' and 'text_body'

        Raises:
            TemplateNotFoundError: If one of the templates is missing
            TemplateRenderError: If rendering fails
        """
        try:
            subject = self.env.get_template(f"{template_name}_subject.txt").render(**context)
            html_body = self.env.get_template(f"{template_name}.html").render(**context)
            text_body = self.env.get_template(f"{template_name}.txt").render(**context)
        except TemplateNotFound as e:
            raise TemplateNotFoundError(
                f"Template not found: {e.name}",
                template_name=template_name,
            ) from e
        except TemplateError as e:
            logger.error(
                "Template rendering failed",
                template_name=template_name,
                error=str(e),
            )
            raise TemplateRenderError(
                f"Failed to render template: {e}",
                template_name=template_name,
            ) from e

        return {
            "subject": " ".join(subject.split()),
            "html_body": html_body,
            "text_body": text_body,
        }


def _format_date(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.strftime("%d %b %Y")


@lru_cache()
def get_template_engine() -> TemplateEngine:
    """Get the shared template engine."""
    return TemplateEngine()
