"""
Celery application for background interview evaluation.

Run a worker with:

    celery -A app.core.celery_app worker -Q llm_evaluation --loglevel=info
"""

from celery import Celery
from kombu import Exchange, Queue

from .config import settings


celery_app = Celery(
    "intervai",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.utils.evaluation"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    enable_utc=True,

    task_track_started=True,
    task_time_limit=300,
    task_soft_time_limit=240,

    # a job is acknowledged only after it ran, so a lost worker hands it to another one
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_default_retry_delay=settings.evaluation_retry_backoff,
    task_max_retries=settings.evaluation_max_attempts - 1,

    result_expires=3600,
    worker_prefetch_multiplier=1,

    task_default_queue="default",
    task_queues=(
        Queue("default", Exchange("default"), routing_key="default"),
        Queue("llm_evaluation", Exchange("llm"), routing_key="llm.evaluation"),
    ),
    task_routes={
        "intervai.evaluate_session": {"queue": "llm_evaluation", "routing_key": "llm.evaluation"},
    },

    task_always_eager=settings.celery_task_always_eager,
    worker_hijack_root_logger=False,
)
