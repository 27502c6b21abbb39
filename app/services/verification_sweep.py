"""
Scheduled verification sweep.

A plain function of (session factory, now): the Celery beat task calls it
every few hours, and tests call it directly without waiting on a clock.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.config import settings
from app.logging_config import company_id_ctx
from app.middleware.metrics import SWEEP_DURATION, SWEEP_RECORDS
from app.services.domain_verification import DomainVerificationService
from app.services.verification_checker import VerificationChecker

logger = logging.getLogger("cmms.domain_verification.sweep")


@dataclass
class SweepSummary:
    started_at: datetime
    verified: int = 0
    failed: int = 0
    skipped: int = 0
    total: int = 0
    duration_ms: float = 0.0

    def record(self, outcome: str) -> None:
        if outcome == "verified":
            self.verified += 1
        elif outcome == "skipped":
            self.skipped += 1
        else:
            self.failed += 1
        SWEEP_RECORDS.labels(outcome=outcome if outcome in ("verified", "skipped") else "failed").inc()

    def as_dict(self) -> Dict[str, object]:
        return {
            "started_at": self.started_at.isoformat(),
            "verified": self.verified,
            "failed": self.failed,
            "skipped": self.skipped,
            "total": self.total,
            "duration_ms": round(self.duration_ms, 1),
        }


def _check_one(
    session_factory: Callable[[], Session],
    verification_id: UUID,
    now: datetime,
    checker: Optional[VerificationChecker],
) -> str:
    db = session_factory()
    try:
        service = DomainVerificationService(db, checker=checker, clock=lambda: now)
        result = service.check_automatic(verification_id)
        return result.outcome
    finally:
        company_id_ctx.set("-")
        db.close()


def run_verification_sweep(
    session_factory: Callable[[], Session],
    *,
    now: datetime,
    checker: Optional[VerificationChecker] = None,
    max_workers: Optional[int] = None,
) -> SweepSummary:
    """
    Check every pending verification once.

    Records at the attempt ceiling are counted as skipped and left for a
    manual retry. One record failing never aborts the sweep.
    """
    max_attempts = settings.DOMAIN_VERIFICATION_MAX_ATTEMPTS
    workers = max_workers or settings.DOMAIN_VERIFICATION_SWEEP_WORKERS
    summary = SweepSummary(started_at=now)
    start = time.perf_counter()

    logger.info("Starting automatic domain verification check...")

    db = session_factory()
    try:
        pending = [
            (v.id, v.attempt_count)
            for v in DomainVerificationService(db).list_pending()
        ]
    finally:
        db.close()

    summary.total = len(pending)
    logger.info("Found %d pending verification(s)", summary.total)

    to_check = []
    for verification_id, attempt_count in pending:
        if attempt_count >= max_attempts:
            logger.warning(
                "Skipping verification %s - max attempts (%d) reached", verification_id, max_attempts
            )
            summary.record("skipped")
            continue
        to_check.append(verification_id)

    if to_check:
        with ThreadPoolExecutor(max_workers=min(workers, len(to_check))) as pool:
            futures = {
                pool.submit(_check_one, session_factory, verification_id, now, checker): verification_id
                for verification_id in to_check
            }
            for future in as_completed(futures):
                verification_id = futures[future]
                try:
                    outcome = future.result()
                except Exception:
                    logger.exception("Error processing verification %s", verification_id)
                    outcome = "failed"
                summary.record(outcome)

    summary.duration_ms = (time.perf_counter() - start) * 1000
    SWEEP_DURATION.observe(summary.duration_ms / 1000)
    logger.info(
        "Domain verification check completed. Verified: %d, Failed: %d, Skipped: %d, Total: %d",
        summary.verified, summary.failed, summary.skipped, summary.total,
    )
    return summary
