import logging
from datetime import datetime, timezone
from uuid import UUID
from app.celery_app import celery_app
from app.db.session import SessionLocal
from app.services.domain_verification import DomainVerificationService
from app.services.verification_sweep import run_verification_sweep

logger = logging.getLogger(__name__)


@celery_app.task(name="domain_verification.sweep")
def sweep_pending_verifications_task():
    """
    Periodic task: check every pending domain verification once.

    Scheduled by beat (see ``celery_app.conf.beat_schedule``) and also
    triggered on demand from the API.
    """
    summary = run_verification_sweep(SessionLocal, now=datetime.now(timezone.utc))
    return summary.as_dict()


@celery_app.task(name="domain_verification.check")
def check_verification_task(verification_id: str):
    """Run a single automatic check outside the sweep."""
    db = SessionLocal()
    try:
        result = DomainVerificationService(db).check_automatic(UUID(verification_id))
        logger.info(
            "Verification %s automatic check: %s%s",
            verification_id,
            result.outcome,
            f" ({result.reason})" if result.reason else "",
        )
        return {"verification_id": verification_id, "outcome": result.outcome, "reason": result.reason}
    finally:
        db.close()
