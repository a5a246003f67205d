"""
Periodic maintenance run by celery beat
"""
import logging
from typing import Any, Dict

from directory_api.services.analytics_aggregator import get_analytics_aggregator
from directory_api.tasks.celery_app import celery_app
from directory_api.tasks.db_session_manager import get_celery_db_session

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    name='directory_api.tasks.maintenance_tasks.reset_monthly_counters',
    acks_late=True
)
def reset_monthly_counters(self) -> Dict[str, Any]:
    """Zero the per-month view/contact counters on every business"""
    with get_celery_db_session() as db:
        updated = get_analytics_aggregator().reset_monthly_counters(db)
    logger.info(f"Monthly counter reset finished ({updated} businesses)")
    return {"status": "completed", "businesses_reset": updated}
