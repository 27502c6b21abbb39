from typing import Generic, List, Optional, TypeVar
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel
from app.models.domain_verification import VerificationMethod

T = TypeVar("T")


# Properties to receive via API
class InitiateVerificationRequest(BaseModel):
    company_id: UUID
    method: VerificationMethod = VerificationMethod.FILE


class DomainVerificationOut(BaseModel):
    id: UUID
    company_id: UUID
    domain: str
    method: str
    token: str
    proof_resource_name: str
    status: str  # pending, verified, failed
    attempt_count: int
    reset_count: int = 0
    last_checked_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DnsInstructions(BaseModel):
    record_type: str
    record_name: str
    record_value: str
    cname_target: str
    instructions: List[str]


class VerificationInstructions(BaseModel):
    verification_id: UUID
    domain: str
    method: str
    file_name: str
    file_content: str
    file_url: str
    instructions: List[str]
    dns: DnsInstructions
    status: str
    attempt_count: int
    max_attempts: int
    last_checked_at: Optional[datetime] = None
    failure_reason: Optional[str] = None


class VerificationDetail(BaseModel):
    verification: DomainVerificationOut
    instructions: VerificationInstructions


class SweepEnqueued(BaseModel):
    task_id: str


# Response envelope
class ApiResponse(BaseModel, Generic[T]):
    success: bool
    message: Optional[str] = None
    data: Optional[T] = None
