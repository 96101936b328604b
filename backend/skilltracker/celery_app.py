from celery import Celery

from skilltracker.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "skilltracker",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["skilltracker.tasks.jobs"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    task_always_eager=settings.celery_task_always_eager,
    task_eager_propagates=settings.celery_task_eager_propagates,
)
