from app.db.base_class import Base
from app.models.company import Company
from app.models.domain_verification import DomainVerification, DomainVerificationAttempt
