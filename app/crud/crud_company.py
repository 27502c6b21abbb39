from typing import Optional
from uuid import UUID
from sqlalchemy import update
from sqlalchemy.orm import Session
from app.models.company import Company


def get(db: Session, company_id: UUID) -> Optional[Company]:
    return db.query(Company).filter(Company.id == company_id).first()


def mark_domain_verified(db: Session, *, company_id: UUID) -> bool:
    """Set ``is_domain_verified``. Idempotent; does not commit."""
    result = db.execute(
        update(Company)
        .where(Company.id == company_id)
        .values(is_domain_verified=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0
