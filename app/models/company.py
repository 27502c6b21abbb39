import uuid
from sqlalchemy import Column, String, Boolean, DateTime, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from app.db.base_class import Base


class Company(Base):
    """
    Tenant company (owned by the company management service).

    Domain verification reads ``verified_domain`` (the claimed domain) and
    writes ``is_domain_verified``; nothing else here belongs to it.
    """
    __tablename__ = "companies"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String, index=True, nullable=False)
    verified_domain = Column(String(255), nullable=True)     # claimed domain, e.g. acmecorp.com
    is_domain_verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    domain_verifications = relationship("DomainVerification", back_populates="company")
