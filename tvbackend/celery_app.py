"""
Celery Application for Background Tasks
========================================
Delivers reset and verification codes out of band so account requests
return without waiting on a mail provider.
"""
import logging
from celery import Celery
from tvbackend.core.config import settings

logger = logging.getLogger("tvbackend.celery")

celery_app = Celery(
    "tv_mock_backend",
    broker=settings.get_celery_broker_url,
    backend=settings.get_celery_result_backend,
)

# Configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=60,
    task_soft_time_limit=45,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=50,
    # The mock runs without a broker unless told otherwise.
    task_always_eager=settings.celery_task_always_eager,
)

celery_app.autodiscover_tasks(["tvbackend.tasks"], related_name="notifications")

logger.info("Celery app configured (eager=%s)", settings.celery_task_always_eager)
