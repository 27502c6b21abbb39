"""
Domain Verification Service

Orchestrates the proof-of-control lifecycle for a company's claimed domain:

  initiate  ->  pending  --check-->  verified   (terminal)
                   ^          \
                   |           `-->  failed     (re-checkable until the ceiling)
                   `---- retry ------'

Every check reserves its attempt with an atomic conditional UPDATE before
probing, so manual and scheduled checks on the same record cannot lose an
increment, and the result write never overwrites a verified record.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.config import settings
from app.crud import crud_company, crud_domain_verification
from app.logging_config import company_id_ctx
from app.middleware.metrics import VERIFICATION_CHECKS
from app.models.domain_verification import (
    CheckTrigger,
    DomainVerification,
    VerificationMethod,
    VerificationStatus,
)
from app.services import verification_token
from app.services.verification_checker import (
    CheckResult,
    VerificationChecker,
    VerificationTarget,
    build_default_checker,
)

logger = logging.getLogger("cmms.domain_verification")


# ═══════════════════════════════════════════
#  Errors
# ═══════════════════════════════════════════

class DomainVerificationError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CompanyNotFound(DomainVerificationError):
    status_code = 404


class VerificationNotFound(DomainVerificationError):
    status_code = 404


class InvalidVerificationState(DomainVerificationError):
    status_code = 400


@dataclass
class AutomaticCheckResult:
    outcome: str                                   # verified, failed, skipped
    verification: Optional[DomainVerification] = None
    reason: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════
#  Service
# ═══════════════════════════════════════════

class DomainVerificationService:

    def __init__(
        self,
        db: Session,
        checker: Optional[VerificationChecker] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self._checker = checker
        self._clock = clock or _utcnow
        self.max_attempts = settings.DOMAIN_VERIFICATION_MAX_ATTEMPTS

    @property
    def checker(self) -> VerificationChecker:
        if self._checker is None:
            self._checker = build_default_checker()
        return self._checker

    # ── Initiation ──

    def initiate(
        self, company_id: UUID, method: VerificationMethod = VerificationMethod.FILE
    ) -> DomainVerification:
        """
        Start (or resume) a verification cycle for the company's claimed domain.

        Returns the pending record unchanged while it is under the attempt
        ceiling, so a proof the tenant already deployed stays valid. A failed
        record is not resumed; a new cycle with a new token is created.
        """
        company = crud_company.get(self.db, company_id)
        if not company:
            raise CompanyNotFound(f"Company with ID '{company_id}' not found")
        company_id_ctx.set(str(company.id))

        domain = verification_token.normalize_domain(company.verified_domain)
        if not domain:
            raise InvalidVerificationState(
                "Company does not have a domain set. Please update the company website first."
            )
        if not verification_token.is_valid_domain(domain):
            raise InvalidVerificationState(f"'{domain}' is not a valid domain name")
        if verification_token.is_personal_email_domain(domain):
            raise InvalidVerificationState(
                f"'{domain}' is a public email provider and cannot be verified as a company domain"
            )

        if crud_domain_verification.get_verified(self.db, company_id=company.id):
            raise InvalidVerificationState(
                "Domain is already verified. If you need to re-verify, please contact support."
            )

        pending = crud_domain_verification.get_pending_for_company(
            self.db, company_id=company.id, domain=domain
        )
        if pending:
            if pending.attempt_count >= self.max_attempts:
                raise InvalidVerificationState(
                    f"Maximum verification attempts ({self.max_attempts}) reached for "
                    f"verification {pending.id}. Reset it with retry before checking again."
                )
            return pending

        method = VerificationMethod(method)
        token = verification_token.generate_verification_token(domain)
        verification = crud_domain_verification.create(
            self.db,
            company_id=company.id,
            domain=domain,
            method=method.value,
            token=token,
            proof_resource_name=verification_token.verification_file_name(token),
        )
        logger.info(
            "Domain verification initiated for company %s, domain: %s (method=%s)",
            company.id, domain, method.value,
        )
        return verification

    # ── Checks ──

    def check_now(self, verification_id: UUID) -> DomainVerification:
        """Manual "Verify Now". Returns the record whether it verified or failed."""
        verification = self.get_verification(verification_id)
        self._ensure_checkable(verification)

        checked = self._perform_check(verification, CheckTrigger.MANUAL)
        if checked is None:
            # Lost the claim, or the record was reset while probing
            self._ensure_checkable(verification)
            raise InvalidVerificationState(
                "Another operation changed this verification during the check; please try again."
            )
        return checked

    def check_automatic(self, verification_id: UUID) -> AutomaticCheckResult:
        """Scheduled check. Skips instead of raising for records that cannot be checked."""
        verification = crud_domain_verification.get(self.db, verification_id)
        if not verification:
            logger.warning("Verification with ID '%s' not found", verification_id)
            return AutomaticCheckResult("skipped", reason="not found")
        if verification.is_verified:
            return AutomaticCheckResult("skipped", verification, reason="already verified")
        if verification.has_reached_ceiling:
            logger.warning(
                "Verification %s has reached max attempts (%d)", verification.id, self.max_attempts
            )
            return AutomaticCheckResult("skipped", verification, reason="max attempts reached")

        checked = self._perform_check(verification, CheckTrigger.AUTOMATIC)
        if checked is None:
            return AutomaticCheckResult("skipped", verification, reason="changed by a concurrent operation")
        return AutomaticCheckResult(checked.status, checked)

    def _ensure_checkable(self, verification: DomainVerification) -> None:
        if verification.is_verified:
            raise InvalidVerificationState("Domain is already verified")
        if verification.has_reached_ceiling:
            raise InvalidVerificationState(
                f"Maximum verification attempts ({self.max_attempts}) reached. "
                "Reset the verification with retry before checking again."
            )

    def _perform_check(
        self, verification: DomainVerification, trigger: CheckTrigger
    ) -> Optional[DomainVerification]:
        """
        Claim an attempt, probe, and persist the outcome.

        The claim is committed before the probe, so an attempt counts even
        when the probe fails or the process dies mid-check. Returns None when
        the claim was lost, or when a retry reset the record while the probe
        was running (the stale result is dropped).
        """
        company_id_ctx.set(str(verification.company_id))
        claim = crud_domain_verification.claim_attempt(
            self.db,
            verification_id=verification.id,
            max_attempts=self.max_attempts,
            checked_at=self._clock(),
        )
        if claim is None:
            self.db.refresh(verification)
            return None

        target = VerificationTarget(
            domain=verification.domain,
            token=verification.token,
            file_name=verification.proof_resource_name,
        )
        try:
            result = self.checker.check(target, verification.method)
        except Exception as e:
            logger.exception("Error verifying domain for verification %s", verification.id)
            result = None
            failure_reason = f"Verification check failed: {e}"
        else:
            failure_reason = result.failure_reason

        verified = result is not None and result.verified
        now = self._clock()
        written = crud_domain_verification.record_result(
            self.db,
            verification_id=verification.id,
            reset_count=claim.reset_count,
            verified=verified,
            checked_at=now,
            failure_reason=failure_reason,
        )
        if not written:
            self.db.rollback()
            self.db.refresh(verification)
            logger.warning(
                "Verification %s changed during attempt %d; result discarded",
                verification.id, claim.attempt_count,
            )
            return None

        if verified:
            self._propagate_company_flag(verification)
        crud_domain_verification.add_attempt(
            self.db,
            verification_id=verification.id,
            attempt_number=claim.attempt_count,
            trigger=trigger.value,
            result=VerificationStatus.VERIFIED.value if verified else VerificationStatus.FAILED.value,
            checked_at=now,
            channel=result.matched_channel if result is not None else None,
            detail=_attempt_detail(result, failure_reason),
        )
        self.db.commit()
        self.db.refresh(verification)

        VERIFICATION_CHECKS.labels(
            trigger=trigger.value,
            result="verified" if verified else "failed",
        ).inc()
        if verified:
            logger.info(
                "Domain verified successfully: %s (verification %s)",
                verification.domain, verification.id,
            )
        else:
            logger.warning(
                "Domain verification failed: %s (verification %s). Attempt %d/%d: %s",
                verification.domain, verification.id,
                claim.attempt_count, self.max_attempts, failure_reason,
            )
        return verification

    def _propagate_company_flag(self, verification: DomainVerification) -> None:
        company = crud_company.get(self.db, verification.company_id)
        claimed = verification_token.normalize_domain(company.verified_domain) if company else ""
        if claimed != verification.domain:
            logger.warning(
                "Company %s no longer claims %s; domain flag left unchanged",
                verification.company_id, verification.domain,
            )
            return
        crud_company.mark_domain_verified(self.db, company_id=company.id)

    # ── Retry ──

    def retry(self, verification_id: UUID) -> DomainVerification:
        verification = self.get_verification(verification_id)
        if verification.is_verified:
            raise InvalidVerificationState("Domain is already verified")

        if not crud_domain_verification.reset_for_retry(self.db, verification_id=verification.id):
            raise InvalidVerificationState("Domain is already verified")
        self.db.refresh(verification)
        logger.info("Verification %s reset for retry", verification.id)
        return verification

    # ── Reads ──

    def get_verification(self, verification_id: UUID) -> DomainVerification:
        verification = crud_domain_verification.get(self.db, verification_id)
        if not verification:
            raise VerificationNotFound(f"Verification with ID '{verification_id}' not found")
        return verification

    def get_status(self, company_id: UUID) -> Optional[DomainVerification]:
        """Latest verification record for the company, or None."""
        company = crud_company.get(self.db, company_id)
        if not company:
            raise CompanyNotFound(f"Company with ID '{company_id}' not found")
        return crud_domain_verification.get_latest_for_company(self.db, company.id)

    def list_pending(self) -> List[DomainVerification]:
        """Records the scheduled sweep should check."""
        return crud_domain_verification.get_pending(self.db)

    def get_instructions(self, verification_id: UUID) -> Dict[str, Any]:
        verification = self.get_verification(verification_id)
        return build_instructions(verification, self.max_attempts)


def _attempt_detail(result: Optional[CheckResult], failure_reason: Optional[str]) -> Optional[str]:
    if result is not None and result.verified:
        return next(r.detail for r in result.results if r.matched)
    return failure_reason


def build_instructions(verification: DomainVerification, max_attempts: int) -> Dict[str, Any]:
    """Human-facing steps for completing the proof. Read-only."""
    interval = settings.DOMAIN_VERIFICATION_SWEEP_INTERVAL_HOURS
    return {
        "verification_id": verification.id,
        "domain": verification.domain,
        "method": verification.method,
        "file_name": verification.proof_resource_name,
        "file_content": verification.token,
        "file_url": verification.file_url,
        "instructions": [
            f"1. Create a text file named: {verification.proof_resource_name}",
            "2. Add the following content to the file (exactly as shown):",
            f"   {verification.token}",
            f"3. Upload the file to the root directory of your website ({verification.domain})",
            f"4. The file should be accessible at: {verification.file_url}",
            f'5. Click "Verify Now" or wait for automatic verification (runs every {interval} hours)',
        ],
        "dns": {
            "record_type": "TXT",
            "record_name": verification.dns_record_name,
            "record_value": verification.txt_record_value,
            "cname_target": verification.cname_target,
            "instructions": [
                "1. Log in to your domain registrar or DNS provider",
                "2. Navigate to DNS settings for your domain",
                "3. Add a new TXT record with the following details:",
                f"   - Host/Name: {verification_token.DNS_RECORD_LABEL}",
                "   - Type: TXT",
                f"   - Value: {verification.txt_record_value}",
                "4. Save the changes and wait for DNS propagation (usually 5-30 minutes)",
                '5. Click "Verify Now" to complete verification',
            ],
        },
        "status": verification.status,
        "attempt_count": verification.attempt_count,
        "max_attempts": max_attempts,
        "last_checked_at": verification.last_checked_at,
        "failure_reason": verification.failure_reason,
    }
