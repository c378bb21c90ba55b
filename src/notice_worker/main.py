"""Celery application for the notice worker."""

from celery import Celery
from celery.schedules import crontab

from restock_service.config import get_settings

settings = get_settings()

app = Celery(
    "notice_worker",
    broker=settings.celery_broker,
    backend=settings.celery_backend,
    include=[
        "notice_worker.tasks.limit_reached",
        "notice_worker.tasks.maintenance",
    ],
)

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=120,
    task_soft_time_limit=90,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_default_queue="notices",
    task_routes={
        "notice_worker.tasks.*": {"queue": "notices"},
    },
    # Enqueueing happens on the API request path; give up quickly if the broker is down
    task_publish_retry_policy={
        "max_retries": 2,
        "interval_start": 0,
        "interval_step": 0.5,
        "interval_max": 1,
    },
)

app.conf.beat_schedule = {
    "prune-webhook-receipts": {
        "task": "notice_worker.tasks.maintenance.prune_webhook_receipts",
        "schedule": crontab(minute=0),
    },
}


def run() -> None:
    """Run the Celery worker."""
    app.worker_main(["worker", "--loglevel=info", "-Q", "notices"])


if __name__ == "__main__":
    run()
