"""
Celery application configuration for background tasks.
"""
from celery import Celery
from celery.signals import setup_logging as celery_setup_logging
from kombu import Queue

from app.features.core.config import get_settings
from app.features.core.logging import setup_logging

settings = get_settings()

# Read configuration from settings (.env / environment)
CELERY_BROKER_URL = getattr(settings, "CELERY_BROKER_URL", None) or settings.REDIS_URL
CELERY_RESULT_BACKEND = getattr(settings, "CELERY_RESULT_BACKEND", None) or settings.REDIS_URL

# Create Celery app
celery_app = Celery(
    "campaign_workflows",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
    include=[
        "app.features.business_automations.campaign_workflows.tasks",
    ]
)

# Celery configuration
celery_app.conf.update(
    # Task routing
    task_routes={
        "campaign_workflows.*": {"queue": "campaign_workflows"},
    },

    # Queue definitions
    task_default_queue="default",
    task_queues=(
        Queue("default"),
        Queue("campaign_workflows"),
    ),

    # Task execution settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task result settings
    result_expires=3600,  # 1 hour

    # Worker settings
    worker_prefetch_multiplier=1,
    task_acks_late=True,

    # A poll that dies mid-step is recovered by lease expiry, not redelivery
    task_reject_on_worker_lost=False,

    # Monitoring
    worker_send_task_events=True,
    task_send_sent_event=True,

    # Beat schedule (for periodic tasks)
    beat_schedule={
        "process-campaign-workflows": {
            "task": "campaign_workflows.process_ready_prospects",
            "schedule": settings.WORKFLOW_POLL_INTERVAL_SECONDS,
            # Skip a tick rather than stack polls behind a slow one
            "options": {"expires": settings.WORKFLOW_POLL_INTERVAL_SECONDS},
        },
        "reclaim-stale-workflow-executions": {
            "task": "campaign_workflows.reclaim_stale_executions",
            "schedule": 300.0,  # Run every 5 minutes
        },
    },
)


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    """Use the application structlog configuration in workers and beat."""
    setup_logging()


if __name__ == "__main__":
    celery_app.start()
