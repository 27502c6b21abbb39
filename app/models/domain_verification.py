"""
Domain Verification Models

One ``DomainVerification`` row per (company, domain) proof cycle, plus an
insert-only ``DomainVerificationAttempt`` row for every check performed.
"""
import enum
import uuid
from sqlalchemy import Column, String, Integer, DateTime, Text, ForeignKey, Index, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from app.config import settings
from app.db.base_class import Base
from app.services import verification_token


class VerificationStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    FAILED = "failed"


class VerificationMethod(str, enum.Enum):
    FILE = "file"
    TXT_RECORD = "txt_record"
    CNAME_RECORD = "cname_record"


class CheckTrigger(str, enum.Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"


class DomainVerification(Base):
    __tablename__ = "domain_verifications"
    __table_args__ = (
        Index("ix_domain_verifications_company_domain", "company_id", "domain"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True)
    domain = Column(String(255), nullable=False)
    method = Column(String(32), nullable=False, default=VerificationMethod.FILE.value)

    # Proof artifacts (immutable)
    token = Column(String(64), nullable=False)
    proof_resource_name = Column(String(255), nullable=False)   # company-verification-<token>.txt

    status = Column(String(16), nullable=False, default=VerificationStatus.PENDING.value, index=True)
    attempt_count = Column(Integer, nullable=False, default=0)
    reset_count = Column(Integer, nullable=False, default=0)       # bumped by every retry
    last_checked_at = Column(DateTime(timezone=True), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    failure_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    company = relationship("Company", back_populates="domain_verifications")
    attempts = relationship(
        "DomainVerificationAttempt",
        back_populates="verification",
        order_by="DomainVerificationAttempt.attempt_number",
    )

    @property
    def is_verified(self) -> bool:
        return self.status == VerificationStatus.VERIFIED.value

    @property
    def has_reached_ceiling(self) -> bool:
        return self.attempt_count >= settings.DOMAIN_VERIFICATION_MAX_ATTEMPTS

    @property
    def file_url(self) -> str:
        return f"https://{self.domain}/{self.proof_resource_name}"

    @property
    def dns_record_name(self) -> str:
        return verification_token.dns_record_name(self.domain)

    @property
    def txt_record_value(self) -> str:
        return verification_token.txt_record_value(self.token)

    @property
    def cname_target(self) -> str:
        return verification_token.cname_target(self.token)


class DomainVerificationAttempt(Base):
    __tablename__ = "domain_verification_attempts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    verification_id = Column(
        UUID(as_uuid=True), ForeignKey("domain_verifications.id"), nullable=False, index=True
    )
    attempt_number = Column(Integer, nullable=False)
    trigger = Column(String(16), nullable=False)       # manual, automatic
    result = Column(String(16), nullable=False)        # verified, failed
    channel = Column(String(32), nullable=True)        # matching probe channel
    detail = Column(Text, nullable=True)
    checked_at = Column(DateTime(timezone=True), nullable=False)

    verification = relationship("DomainVerification", back_populates="attempts")
