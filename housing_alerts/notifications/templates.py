"""Template rendering for listing digests using Jinja2.

Templates live in the ``housing_alerts.notifications`` package under
``email_templates/`` and are rendered with strict undefined checking so a
missing variable fails loudly instead of producing a blank email.
"""

import logging
from typing import Dict

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError, select_autoescape

from .models import NotificationTemplateError

logger = logging.getLogger(__name__)


class TemplateRenderer:
    """Renders the subject, HTML body and text body of a listing digest."""

    def __init__(
        self,
        template_dir: str = "email_templates",
        subject_template: str = "listing_alert_subject.j2",
        html_template: str = "listing_alert_body.html.j2",
        text_template: str = "listing_alert_body.txt.j2",
    ):
        self.subject_template_name = subject_template
        self.html_template_name = html_template
        self.text_template_name = text_template

        self.env = Environment(
            loader=PackageLoader("housing_alerts.notifications", template_dir),
            autoescape=select_autoescape(enabled_extensions=("html.j2",), default_for_string=False),
            undefined=StrictUndefined,
        )
        self.env.filters["money"] = _format_money

        logger.debug(f"Initialized TemplateRenderer with templates from {template_dir}")

    def render(self, context: Dict) -> Dict[str, str]:
        """Render all three templates.

        Returns:
            Dictionary with ``subject`` (single line), ``html_body`` and ``text_body``

        Raises:
            NotificationTemplateError: If rendering fails
        """
        try:
            subject = (
                self.env.get_template(self.subject_template_name)
                .render(context)
                .strip()
                .replace("\n", " ")
            )
            html_body = self.env.get_template(self.html_template_name).render(context)
            text_body = self.env.get_template(self.text_template_name).render(context)
        except TemplateError as e:
            error_msg = f"Template rendering failed: {e}"
            logger.error(error_msg, exc_info=True)
            raise NotificationTemplateError(error_msg) from e

        return {"subject": subject, "html_body": html_body, "text_body": text_body}


def _format_money(value) -> str:
    if value is None:
        return "Price not listed"
    return f"${value:,}"
