from celery import Celery

from buildtrack.core.config import settings
from buildtrack.core.logging import configure_logging

configure_logging(settings.ENV)

celery_app = Celery(
    "buildtrack",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["buildtrack.worker.tasks"],
)
celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)
