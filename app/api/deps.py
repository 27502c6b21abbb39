from typing import Generator
from fastapi import Depends
from sqlalchemy.orm import Session
from app.db.session import SessionLocal
from app.services.domain_verification import DomainVerificationService
from app.services.verification_checker import VerificationChecker, build_default_checker


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_verification_checker() -> VerificationChecker:
    return build_default_checker()


def get_verification_service(
    db: Session = Depends(get_db),
    checker: VerificationChecker = Depends(get_verification_checker),
) -> DomainVerificationService:
    return DomainVerificationService(db, checker=checker)
