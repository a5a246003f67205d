"""
Inquiry email notifications

Enqueued by the NotificationDispatcher after an inquiry is submitted or
answered. SMTP and connection errors are retried with exponential backoff
and jitter; every attempt leaves an email_logs row.
"""
import logging
import smtplib
from typing import Any, Dict

from directory_api.db.models import Business, CustomerInquiry, User
from directory_api.services.email_service import (
    compose_inquiry_notification,
    compose_response_notification,
    get_email_service,
)
from directory_api.tasks.celery_app import celery_app
from directory_api.tasks.db_session_manager import get_celery_db_session

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (smtplib.SMTPException, OSError)


@celery_app.task(
    bind=True,
    name='directory_api.tasks.notification_tasks.send_inquiry_notification',
    autoretry_for=RETRYABLE_ERRORS,
    retry_backoff=True,
    retry_jitter=True,
    max_retries=5,
    acks_late=True,
    reject_on_worker_lost=True
)
def send_inquiry_notification(self, inquiry_id: str) -> Dict[str, Any]:
    """Tell the business owner about a new inquiry"""
    with get_celery_db_session() as db:
        inquiry = db.get(CustomerInquiry, inquiry_id)
        if not inquiry:
            logger.warning(f"Inquiry {inquiry_id} not found, dropping owner notification")
            return {"status": "skipped", "reason": "inquiry_not_found"}

        business = db.get(Business, inquiry.business_id)
        owner = db.get(User, business.owner_id) if business else None
        if not owner:
            logger.warning(f"No owner for inquiry {inquiry_id}, dropping owner notification")
            return {"status": "skipped", "reason": "owner_not_found"}

        subject, body = compose_inquiry_notification(inquiry, business, owner)
        message_id = get_email_service().send_email(db, owner.email, subject, body)

    return {
        "status": "sent" if message_id else "skipped",
        "inquiry_id": inquiry_id,
        "attempt": self.request.retries + 1,
    }


@celery_app.task(
    bind=True,
    name='directory_api.tasks.notification_tasks.send_response_notification',
    autoretry_for=RETRYABLE_ERRORS,
    retry_backoff=True,
    retry_jitter=True,
    max_retries=5,
    acks_late=True,
    reject_on_worker_lost=True
)
def send_response_notification(self, inquiry_id: str) -> Dict[str, Any]:
    """Send the owner's reply to the customer"""
    with get_celery_db_session() as db:
        inquiry = db.get(CustomerInquiry, inquiry_id)
        if not inquiry or not inquiry.response_message:
            logger.warning(f"Inquiry {inquiry_id} missing or unanswered, dropping response notification")
            return {"status": "skipped", "reason": "no_response"}

        business = db.get(Business, inquiry.business_id)
        subject, body = compose_response_notification(inquiry, business)
        message_id = get_email_service().send_email(db, inquiry.customer_email, subject, body)

    return {
        "status": "sent" if message_id else "skipped",
        "inquiry_id": inquiry_id,
        "attempt": self.request.retries + 1,
    }
