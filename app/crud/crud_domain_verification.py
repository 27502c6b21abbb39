from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID
from sqlalchemy import update
from sqlalchemy.orm import Session
from app.models.domain_verification import (
    DomainVerification,
    DomainVerificationAttempt,
    VerificationStatus,
)


def get(db: Session, verification_id: UUID) -> Optional[DomainVerification]:
    return db.query(DomainVerification).filter(DomainVerification.id == verification_id).first()


def get_latest_for_company(db: Session, company_id: UUID) -> Optional[DomainVerification]:
    return (
        db.query(DomainVerification)
        .filter(DomainVerification.company_id == company_id)
        .order_by(DomainVerification.created_at.desc())
        .first()
    )


def get_verified(db: Session, *, company_id: UUID) -> Optional[DomainVerification]:
    return db.query(DomainVerification).filter(
        DomainVerification.company_id == company_id,
        DomainVerification.status == VerificationStatus.VERIFIED.value,
    ).first()


def get_pending_for_company(
    db: Session, *, company_id: UUID, domain: str
) -> Optional[DomainVerification]:
    return (
        db.query(DomainVerification)
        .filter(
            DomainVerification.company_id == company_id,
            DomainVerification.domain == domain,
            DomainVerification.status == VerificationStatus.PENDING.value,
        )
        .order_by(DomainVerification.created_at.desc())
        .first()
    )


def get_pending(db: Session, limit: Optional[int] = None) -> List[DomainVerification]:
    """Pending records, oldest first (for the scheduled sweep)."""
    query = (
        db.query(DomainVerification)
        .filter(DomainVerification.status == VerificationStatus.PENDING.value)
        .order_by(DomainVerification.created_at.asc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def create(
    db: Session,
    *,
    company_id: UUID,
    domain: str,
    method: str,
    token: str,
    proof_resource_name: str,
) -> DomainVerification:
    db_obj = DomainVerification(
        company_id=company_id,
        domain=domain,
        method=method,
        token=token,
        proof_resource_name=proof_resource_name,
        status=VerificationStatus.PENDING.value,
        attempt_count=0,
        reset_count=0,
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


# ═══════════════════════════════════════════
#  Conditional updates (per-record serialization)
# ═══════════════════════════════════════════

def claim_attempt(
    db: Session, *, verification_id: UUID, max_attempts: int, checked_at: datetime
) -> Optional[Any]:
    """
    Atomically reserve one check attempt.

    Increments ``attempt_count`` only while the record is not verified and
    is under the ceiling, so concurrent checks can never lose an increment
    or push the count past ``max_attempts``. Commits.

    Returns the claimed ``(attempt_count, reset_count)`` row, or None when
    nothing was claimed.
    """
    result = db.execute(
        update(DomainVerification)
        .where(
            DomainVerification.id == verification_id,
            DomainVerification.status != VerificationStatus.VERIFIED.value,
            DomainVerification.attempt_count < max_attempts,
        )
        .values(
            attempt_count=DomainVerification.attempt_count + 1,
            last_checked_at=checked_at,
        )
        .returning(DomainVerification.attempt_count, DomainVerification.reset_count)
        .execution_options(synchronize_session=False)
    )
    claim = result.first()
    db.commit()
    return claim


def record_result(
    db: Session,
    *,
    verification_id: UUID,
    reset_count: int,
    verified: bool,
    checked_at: datetime,
    failure_reason: Optional[str] = None,
) -> bool:
    """
    Write the outcome of a claimed attempt.

    Never overwrites ``verified``, and matches nothing if the record was
    reset after the claim (``reset_count`` moved on). Does not commit, so
    the caller can write the company flag and the attempt row in the same
    transaction.
    """
    if verified:
        values = {
            "status": VerificationStatus.VERIFIED.value,
            "verified_at": checked_at,
            "failure_reason": None,
        }
    else:
        values = {
            "status": VerificationStatus.FAILED.value,
            "failure_reason": failure_reason,
        }
    result = db.execute(
        update(DomainVerification)
        .where(
            DomainVerification.id == verification_id,
            DomainVerification.status != VerificationStatus.VERIFIED.value,
            DomainVerification.reset_count == reset_count,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def reset_for_retry(db: Session, *, verification_id: UUID) -> bool:
    """
    Back to pending with a fresh attempt budget; token and file name are kept.

    Bumps ``reset_count`` so results of checks claimed before the reset are
    discarded. Commits.
    """
    result = db.execute(
        update(DomainVerification)
        .where(
            DomainVerification.id == verification_id,
            DomainVerification.status != VerificationStatus.VERIFIED.value,
        )
        .values(
            status=VerificationStatus.PENDING.value,
            attempt_count=0,
            reset_count=DomainVerification.reset_count + 1,
            failure_reason=None,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def add_attempt(
    db: Session,
    *,
    verification_id: UUID,
    attempt_number: int,
    trigger: str,
    result: str,
    checked_at: datetime,
    channel: Optional[str] = None,
    detail: Optional[str] = None,
) -> DomainVerificationAttempt:
    db_obj = DomainVerificationAttempt(
        verification_id=verification_id,
        attempt_number=attempt_number,
        trigger=trigger,
        result=result,
        channel=channel,
        detail=detail,
        checked_at=checked_at,
    )
    db.add(db_obj)
    return db_obj
