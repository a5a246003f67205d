"""
Plain-text email delivery over SMTP with an audit row per attempt
"""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from directory_api.core.config import Settings, get_settings
from directory_api.db.models import Business, CustomerInquiry, EmailLog, User

logger = logging.getLogger(__name__)


def compose_inquiry_notification(inquiry: CustomerInquiry, business: Business, owner: User) -> Tuple[str, str]:
    """Owner-facing message for a new inquiry"""
    settings = get_settings()
    subject = f"New Inquiry for {business.business_name}"
    lines = [
        f"Hello {owner.first_name},",
        "",
        f"You have received a new inquiry for {business.business_name}.",
        "",
        f"From: {inquiry.customer_name} <{inquiry.customer_email}>",
    ]
    if inquiry.customer_phone:
        lines.append(f"Phone: {inquiry.customer_phone}")
    lines += [
        f"Type: {inquiry.inquiry_type}",
        f"Subject: {inquiry.subject}",
        "",
        inquiry.message,
        "",
        f"Reply from your dashboard: {settings.frontend_url}/business/dashboard",
    ]
    return subject, "\n".join(lines)


def compose_response_notification(inquiry: CustomerInquiry, business: Business) -> Tuple[str, str]:
    """Customer-facing message carrying the owner's reply"""
    subject = f"Response to your inquiry - {business.business_name}"
    lines = [
        f"Hello {inquiry.customer_name},",
        "",
        f"{business.business_name} has responded to your inquiry.",
        "",
        f"Your subject: {inquiry.subject}",
        "",
        "Their response:",
        inquiry.response_message or "",
    ]
    if business.phone or business.email:
        lines += ["", "Contact them directly:"]
        if business.phone:
            lines.append(f"Phone: {business.phone}")
        if business.email:
            lines.append(f"Email: {business.email}")
    return subject, "\n".join(lines)


class EmailService:

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def _log(self, db: Session, recipient: str, subject: str, status: str,
             message_id: Optional[str] = None, error_message: Optional[str] = None) -> None:
        db.add(EmailLog(
            recipient=recipient,
            subject=subject,
            status=status,
            message_id=message_id,
            error_message=error_message,
        ))
        db.commit()

    def send_email(self, db: Session, recipient: str, subject: str, body: str) -> Optional[str]:
        """
        Send one message and record the attempt. Returns the Message-ID, or
        None when SMTP is not configured. SMTP failures are logged, recorded
        and re-raised so the calling task can retry.
        """
        if not self.settings.smtp_configured:
            self.logger.warning(f"SMTP not configured, skipping email '{subject}' to {recipient}")
            return None

        message_id = make_msgid()
        msg = MIMEMultipart()
        msg['From'] = self.settings.from_email
        msg['To'] = recipient
        msg['Subject'] = subject
        msg['Message-ID'] = message_id
        msg.attach(MIMEText(body, 'plain'))

        try:
            server = smtplib.SMTP(self.settings.smtp_server, self.settings.smtp_port, timeout=30)
            try:
                if self.settings.smtp_use_tls:
                    server.starttls()
                server.login(self.settings.smtp_user, self.settings.smtp_password)
                server.sendmail(self.settings.from_email, [recipient], msg.as_string())
            finally:
                server.quit()
        except (smtplib.SMTPException, OSError) as e:
            self.logger.error(f"Failed to send email '{subject}' to {recipient}: {e}")
            self._log(db, recipient, subject, "failed", error_message=str(e))
            raise

        self._log(db, recipient, subject, "sent", message_id=message_id)
        self.logger.info(f"Email '{subject}' sent to {recipient}")
        return message_id


def get_email_service() -> EmailService:
    return EmailService()
