import os
from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging

from directory_api.core.config import get_settings
from directory_api.core.logging import configure_logging

settings = get_settings()

celery_app = Celery(
    "directory_api",
    broker=settings.get_celery_broker_url(),
    backend=settings.get_celery_result_backend(),
    include=[
        "directory_api.tasks.notification_tasks",
        "directory_api.tasks.maintenance_tasks",
    ]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    result_expires=1800,  # 30 minutes
    task_track_started=True,
    task_time_limit=5 * 60,
    task_soft_time_limit=4 * 60,

    worker_concurrency=int(os.getenv('CELERY_WORKER_CONCURRENCY', '2')),
    worker_prefetch_multiplier=int(os.getenv('CELERY_WORKER_PREFETCH', '4')),
    worker_max_tasks_per_child=int(os.getenv('CELERY_MAX_TASKS_PER_CHILD', '100')),

    # Acknowledge only after completion so a lost worker re-queues the email
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    task_routes={
        'directory_api.tasks.notification_tasks.*': {'queue': 'notifications'},
        'directory_api.tasks.maintenance_tasks.*': {'queue': 'maintenance'},
    },

    task_always_eager=settings.celery_task_always_eager,
    task_eager_propagates=True,
)

celery_app.conf.beat_schedule = {
    # monthly_views / monthly_contacts restart at the top of each month
    'reset-monthly-counters': {
        'task': 'directory_api.tasks.maintenance_tasks.reset_monthly_counters',
        'schedule': crontab(minute=5, hour=0, day_of_month=1),
    },
}


@setup_logging.connect
def configure_worker_logging(**kwargs):
    # Workers log through the same profile as the API instead of Celery's default handlers
    configure_logging(settings.environment, level=settings.log_level)
