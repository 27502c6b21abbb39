from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging as celery_setup_logging
from app.config import settings

celery_app = Celery(
    "cmms",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND
)

celery_app.conf.broker_connection_retry_on_startup = True

celery_app.conf.task_routes = {
    "domain_verification.*": {"queue": "celery"}
}

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
)

# Automatic verification sweep (every N hours, on the hour)
celery_app.conf.beat_schedule = {
    "domain-verification-check": {
        "task": "domain_verification.sweep",
        "schedule": crontab(
            minute=0, hour=f"*/{settings.DOMAIN_VERIFICATION_SWEEP_INTERVAL_HOURS}"
        ),
    },
}


@celery_setup_logging.connect
def _configure_worker_logging(**kwargs):
    # Keep worker output in the same format as the API
    from app.logging_config import setup_logging
    setup_logging()


celery_app.autodiscover_tasks(['app.tasks'])

# Explicitly import tasks to ensure they are registered
import app.tasks.verification_tasks  # noqa: F401, E402
