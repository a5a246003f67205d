"""
Notification dispatcher

Hands inquiry emails to the Celery notification queue. Delivery, retries and
backoff happen in the worker; a broker that cannot be reached is logged here
and never fails the HTTP request that triggered the notification.
"""
import logging

logger = logging.getLogger(__name__)


class NotificationDispatcher:

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def _enqueue(self, task, inquiry_id: str) -> bool:
        try:
            result = task.delay(inquiry_id)
            self.logger.info(f"Queued {task.name} for inquiry {inquiry_id} (task {result.id})")
            return True
        except Exception as e:
            self.logger.error(f"Failed to queue {task.name} for inquiry {inquiry_id}: {e}")
            return False

    def notify_inquiry_received(self, inquiry_id: str) -> bool:
        """Email the business owner about a new inquiry"""
        from directory_api.tasks.notification_tasks import send_inquiry_notification
        return self._enqueue(send_inquiry_notification, inquiry_id)

    def notify_inquiry_responded(self, inquiry_id: str) -> bool:
        """Email the customer the owner's response"""
        from directory_api.tasks.notification_tasks import send_response_notification
        return self._enqueue(send_response_notification, inquiry_id)


def get_notification_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher()
