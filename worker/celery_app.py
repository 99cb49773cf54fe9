from celery import Celery
from app.core.config import settings

celery = Celery(
    "scheduler-worker",
    broker=settings.rabbitmq_url,
    backend=settings.redis_url,
    include=["worker.tasks"],
)

celery.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_default_queue="default",
    task_routes={
        "worker.tasks.poll_due_messages": {"queue": "poller"},
        "worker.tasks.send_scheduled_message": {"queue": "delivery"},
    },
    beat_schedule={
        "poll-due-messages": {
            "task": "worker.tasks.poll_due_messages",
            "schedule": settings.poll_interval_seconds,
        },
    },
)
