"""
portfolio/mailer.py -- SMTP notifications for contact form submissions.

Two messages per submission:
  1. admin notice     -- to Settings.admin_email, Reply-To set to the visitor.
  2. confirmation     -- to the visitor, acknowledging receipt.

The mailer is an outbound collaborator: every transport problem (refused
connection, timeout, auth failure, rejected recipient, a header value with a
line break) surfaces as a single UpstreamFailure. The contact route treats
that as non-fatal -- the message is already persisted when mail is attempted.

User-supplied text is HTML-escaped before it is placed in the HTML bodies.
"""

from __future__ import annotations

import html
import logging
import smtplib
import ssl
from email.message import EmailMessage

from core.config import Settings
from core.errors import UpstreamFailure
from portfolio.models import ContactMessage

logger = logging.getLogger("ariacreative.mailer")

_SENDER_NAME = "Aria Creative"


class ContactMailer:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @property
    def configured(self) -> bool:
        return self.settings.email_configured

    @property
    def sender(self) -> str:
        return f"{_SENDER_NAME} <{self.settings.email_user}>"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _connect(self) -> smtplib.SMTP:
        s = self.settings
        if s.email_secure:
            smtp: smtplib.SMTP = smtplib.SMTP_SSL(
                s.email_host, s.email_port, timeout=s.email_timeout_seconds, context=ssl.create_default_context()
            )
        else:
            smtp = smtplib.SMTP(s.email_host, s.email_port, timeout=s.email_timeout_seconds)
            smtp.starttls(context=ssl.create_default_context())
        smtp.login(s.email_user, s.email_password)
        return smtp

    def send(self, *messages: EmailMessage) -> None:
        """Deliver messages over one SMTP session. Raises UpstreamFailure."""
        if not self.configured:
            raise UpstreamFailure("Email transport is not configured.", code="email_not_configured")
        try:
            smtp = self._connect()
            try:
                for message in messages:
                    smtp.send_message(message)
            finally:
                smtp.quit()
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("SMTP delivery via %s failed: %s", self.settings.email_host, exc)
            raise UpstreamFailure("Email delivery failed.", code="email_failed") from exc

    def verify(self) -> None:
        """Open and authenticate an SMTP session without sending anything."""
        if not self.configured:
            raise UpstreamFailure("Email transport is not configured.", code="email_not_configured")
        try:
            self._connect().quit()
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("SMTP verification against %s failed: %s", self.settings.email_host, exc)
            raise UpstreamFailure("Email transport verification failed.", code="email_failed") from exc

    # ------------------------------------------------------------------
    # Contact notifications
    # ------------------------------------------------------------------

    def build_admin_notice(self, contact: ContactMessage) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = f"Nouveau message de contact : {contact.subject}"
        msg["From"] = self.sender
        msg["To"] = self.settings.admin_email or self.settings.email_user
        msg["Reply-To"] = contact.email
        company = contact.company or "-"
        msg.set_content(
            f"Nom : {contact.name}\n"
            f"Email : {contact.email}\n"
            f"Entreprise : {company}\n"
            f"Sujet : {contact.subject}\n\n"
            f"{contact.message}\n"
        )
        msg.add_alternative(
            "<h2>Nouveau message de contact</h2>"
            f"<p><strong>Nom :</strong> {html.escape(contact.name)}</p>"
            f"<p><strong>Email :</strong> {html.escape(contact.email)}</p>"
            f"<p><strong>Entreprise :</strong> {html.escape(company)}</p>"
            f"<p><strong>Sujet :</strong> {html.escape(contact.subject)}</p>"
            f"<p>{html.escape(contact.message).replace(chr(10), '<br>')}</p>",
            subtype="html",
        )
        return msg

    def build_confirmation(self, contact: ContactMessage) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = "Nous avons bien reçu votre message"
        msg["From"] = self.sender
        msg["To"] = contact.email
        msg.set_content(
            f"Bonjour {contact.name},\n\n"
            "Merci pour votre message. Notre équipe vous répondra dans les plus brefs délais.\n\n"
            f"Rappel de votre demande : {contact.subject}\n\n"
            f"L'équipe {_SENDER_NAME}\n"
        )
        msg.add_alternative(
            f"<p>Bonjour {html.escape(contact.name)},</p>"
            "<p>Merci pour votre message. Notre équipe vous répondra dans les plus brefs délais.</p>"
            f"<p><em>Rappel de votre demande : {html.escape(contact.subject)}</em></p>"
            f"<p>L'équipe {_SENDER_NAME}</p>",
            subtype="html",
        )
        return msg

    def send_contact_notifications(self, contact: ContactMessage) -> None:
        """Send the admin notice and the visitor confirmation. Raises UpstreamFailure."""
        try:
            messages = (self.build_admin_notice(contact), self.build_confirmation(contact))
        except ValueError as exc:
            # EmailMessage refuses header values containing CR/LF.
            logger.warning("Could not build notifications for contact message %s: %s", contact.id, exc)
            raise UpstreamFailure("Notification email could not be built.", code="email_failed") from exc
        self.send(*messages)
        logger.info("Contact notifications sent for message %s", contact.id)
