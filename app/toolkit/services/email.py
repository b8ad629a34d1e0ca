"""
Email service for centralized email composition and sending.

This module provides the EmailService class for building emails with:
- Django template rendering for HTML and plain text
- Attachment handling
- Logged delivery that propagates backend failures

Configuration:
    Email settings are read from Django settings:
    - EMAIL_BACKEND
    - EMAIL_HOST, EMAIL_PORT
    - DEFAULT_FROM_EMAIL

Usage:
    from toolkit.services.email import EmailService

    message = EmailService.render(
        to="user@example.com",
        subject="Your receipt",
        template_name="billing/email/receipt",
        context={"charge": charge},
    )
    EmailService.deliver(message)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template import TemplateDoesNotExist
from django.template.loader import render_to_string
from django.utils.html import strip_tags

from toolkit.helpers import mask_email

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


class EmailService:
    """
    Centralized email composition with template support.

    Features:
        - Template-based emails (HTML + plain text)
        - Attachments as (filename, content, mimetype) tuples
        - Delivery logging with masked recipients

    Usage:
        message = EmailService.render(
            to="user@example.com",
            subject="Welcome!",
            template_name="welcome",
            context={"user_name": "John"},
        )
        EmailService.deliver(message)
    """

    @staticmethod
    def render(
        to: str | list[str],
        subject: str,
        template_name: str,
        context: dict[str, Any],
        from_email: str | None = None,
        reply_to: str | None = None,
        attachments: list[tuple] | None = None,
    ) -> EmailMultiAlternatives:
        """
        Build an email from a template without sending it.

        Args:
            to: Recipient email address(es)
            subject: Email subject line
            template_name: Name of template (without extension)
                           Looks for: {template_name}.html and {template_name}.txt
            context: Template context variables
            from_email: Sender email (defaults to DEFAULT_FROM_EMAIL)
            reply_to: Reply-to address
            attachments: List of (filename, content, mimetype) tuples

        Returns:
            The unsent message

        Raises:
            TemplateDoesNotExist: Neither template exists
        """
        if isinstance(to, str):
            to = [to]

        from_email = from_email or settings.DEFAULT_FROM_EMAIL

        try:
            html_content = render_to_string(f"{template_name}.html", context)
        except TemplateDoesNotExist:
            html_content = None

        try:
            text_content = render_to_string(f"{template_name}.txt", context)
        except TemplateDoesNotExist:
            # Fallback: strip HTML tags from HTML content
            if html_content is None:
                raise
            text_content = strip_tags(html_content)

        message = EmailMultiAlternatives(
            subject=str(subject),
            body=text_content,
            from_email=from_email,
            to=to,
            reply_to=[reply_to] if reply_to else None,
        )

        if html_content:
            message.attach_alternative(html_content, "text/html")

        for filename, content, mimetype in attachments or []:
            message.attach(filename, content, mimetype)

        return message

    @staticmethod
    def deliver(message: EmailMultiAlternatives) -> int:
        """
        Send a message built by render().

        Returns:
            Number of messages sent (1)

        Raises:
            Exception: Whatever the email backend raised (logged first)
        """
        recipients = [mask_email(address) for address in message.to]
        try:
            sent = message.send(fail_silently=False)
        except Exception:
            logger.exception(
                "Failed to send email",
                extra={"recipients": recipients, "subject": message.subject},
            )
            raise

        logger.info(
            "Email sent",
            extra={"recipients": recipients, "subject": message.subject},
        )
        return sent
