"""
Database sessions for Celery tasks

Workers run outside any request, so each task opens a session on the
process-wide gateway, commits what it did on success and always closes it.
"""
import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy.orm import Session

from directory_api.db.database import get_gateway, transaction_scope

logger = logging.getLogger(__name__)


@contextmanager
def get_celery_db_session() -> Generator[Session, None, None]:
    """
    Task-scoped session on the primary.

        with get_celery_db_session() as db:
            inquiry = db.get(CustomerInquiry, inquiry_id)
    """
    db = get_gateway().session()
    try:
        with transaction_scope(db):
            yield db
    except Exception as e:
        logger.error("Task transaction rolled back: {}".format(e))
        raise
    finally:
        db.close()
