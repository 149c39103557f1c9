"""
Biometric Service - WebAuthn enrollment and authentication orchestration
"""
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, time, timezone
from typing import Any, Dict, Iterator, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from atams.logging import get_logger
from atams.transaction import transaction

from app.core.config import settings
from app.core.errors import (
    Affordance,
    BiometricErrorCode,
    BiometricGateException,
    code_from_dom_exception,
    error_affordance,
    error_message,
    RETRYABLE_AFFORDANCES,
)
from app.models.biometric_credential import BiometricCredential as BiometricCredentialModel
from app.repositories.biometric_credential_repository import BiometricCredentialRepository
from app.repositories.biometric_event_repository import BiometricEventRepository, OUTCOME_SUCCESS
from app.repositories.used_jti_repository import UsedJtiRepository
from app.schemas.biometric import (
    AssertionPayload,
    AssertionVerifyResponse,
    AuthenticationOptionsResponse,
    BiometricCredential,
    CeremonyErrorReport,
    CeremonyErrorResponse,
    EnrollmentStatusResponse,
    RegistrationOptionsResponse,
    RegistrationVerifyRequest,
)
from app.services import webauthn
from app.services.attendance_policy import ensure_utc
from app.services.jwt_service import JwtService, PURPOSE_AUTHENTICATE, PURPOSE_ENROLL

logger = get_logger(__name__)

CEREMONY_ENROLL = "enroll"
CEREMONY_AUTHENTICATE = "authenticate"


@dataclass
class VerifiedAssertion:
    """Assertion that passed cryptographic checks but is not yet persisted"""
    jti: str
    credential: BiometricCredentialModel
    result: webauthn.AssertionResult


class BiometricService:
    def __init__(self) -> None:
        self.credential_repo = BiometricCredentialRepository()
        self.event_repo = BiometricEventRepository()
        self.jti_repo = UsedJtiRepository()
        self.jwt_service = JwtService()

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _record_event(
        self,
        db: Session,
        user_id: int,
        ceremony: str,
        outcome: str,
        detail: Optional[str] = None,
        credential_id: Optional[str] = None
    ) -> None:
        self.event_repo.create(db, {
            "be_user_id": user_id,
            "be_ceremony": ceremony,
            "be_outcome": outcome,
            "be_detail": detail,
            "be_credential_id": credential_id,
            "be_occurred_at": self._now()
        })

    @contextmanager
    def audit_ceremony(self, db: Session, user_id: int, ceremony: str) -> Iterator[None]:
        """Record a failed BiometricEvent for any gate error raised inside the block"""
        try:
            yield
        except BiometricGateException as exc:
            db.rollback()
            self._record_event(db, user_id, ceremony, exc.code.value, exc.message)
            logger.warning(
                f"Biometric {ceremony} rejected: {exc.code.value}",
                extra={'extra_data': {'user_id': user_id, 'ceremony': ceremony, 'code': exc.code.value}}
            )
            raise

    def _consume_challenge(self, db: Session, user_id: int, payload: Dict[str, Any]) -> None:
        try:
            self.jti_repo.mark_jti_as_used(db, user_id, payload["jti"], payload["purpose"])
        except IntegrityError:
            raise BiometricGateException(BiometricErrorCode.CHALLENGE_REPLAYED)

    # ==================== ENROLLMENT ====================

    def enrollment_attempts_remaining(self, db: Session, user_id: int) -> int:
        """
        Failed enrollments allowed before troubleshooting is offered

        Counts failures since the later of the last successful enrollment
        and the start of the current day in ATTENDANCE_TIMEZONE.
        """
        tz = ZoneInfo(settings.ATTENDANCE_TIMEZONE)
        day_start = datetime.combine(self._now().astimezone(tz).date(), time.min, tzinfo=tz)
        since = day_start.astimezone(timezone.utc)

        last_success = self.event_repo.last_success_at(db, user_id, CEREMONY_ENROLL)
        if last_success is not None and ensure_utc(last_success) > since:
            since = ensure_utc(last_success)

        failures = self.event_repo.count_failures_since(db, user_id, CEREMONY_ENROLL, since)
        return max(0, settings.BIOMETRIC_MAX_ENROLL_ATTEMPTS - failures)

    def _raise_enrollment_failure(self, db: Session, user_id: int, exc: BiometricGateException) -> None:
        remaining = self.enrollment_attempts_remaining(db, user_id)
        details = {"attempts_remaining": remaining}
        if remaining == 0:
            raise BiometricGateException(
                exc.code, exc.message, affordance=Affordance.TROUBLESHOOT, details=details
            ) from exc
        raise BiometricGateException(exc.code, exc.message, affordance=exc.affordance, details=details) from exc

    def registration_options(
        self,
        db: Session,
        user_id: int,
        username: str,
        display_name: Optional[str] = None
    ) -> RegistrationOptionsResponse:
        """
        Issue a registration challenge for a platform authenticator

        Raises:
            BiometricGateException: TOO_MANY_ATTEMPTS when the retry cap is reached
        """
        if self.enrollment_attempts_remaining(db, user_id) == 0:
            raise BiometricGateException(
                BiometricErrorCode.TOO_MANY_ATTEMPTS, details={"attempts_remaining": 0}
            )

        ceremony = self.jwt_service.issue_ceremony_token(user_id, PURPOSE_ENROLL)
        existing = self.credential_repo.get_user_credentials(db, user_id)

        public_key = {
            "challenge": ceremony["challenge"],
            "rp": {"id": settings.WEBAUTHN_RP_ID, "name": settings.WEBAUTHN_RP_NAME},
            "user": {
                "id": webauthn.b64url_encode(str(user_id).encode("utf-8")),
                "name": username,
                "displayName": display_name or username,
            },
            "pubKeyCredParams": [{"type": "public-key", "alg": webauthn.COSE_ALG_ES256}],
            "authenticatorSelection": {
                "authenticatorAttachment": "platform",
                "userVerification": "required",
                "residentKey": "preferred",
            },
            "timeout": settings.CEREMONY_TIMEOUT_SECONDS * 1000,
            "attestation": "none",
            "excludeCredentials": [self._descriptor(c) for c in existing],
        }

        return RegistrationOptionsResponse(
            ceremony_token=ceremony["token"],
            expires_in=ceremony["expires_in"],
            public_key=public_key
        )

    def verify_registration(
        self,
        db: Session,
        user_id: int,
        request: RegistrationVerifyRequest
    ) -> BiometricCredential:
        """
        Verify navigator.credentials.create() output and persist the credential

        Nothing is written to biometric_credentials unless every check passes.

        Raises:
            BiometricGateException: With attempts_remaining in details
        """
        try:
            with self.audit_ceremony(db, user_id, CEREMONY_ENROLL):
                credential = self._register(db, user_id, request)
        except BiometricGateException as exc:
            self._raise_enrollment_failure(db, user_id, exc)

        self._record_event(db, user_id, CEREMONY_ENROLL, OUTCOME_SUCCESS, credential_id=credential.bc_credential_id)
        logger.info(
            "Biometric credential enrolled",
            extra={'extra_data': {'user_id': user_id, 'credential_id': credential.bc_credential_id}}
        )
        return BiometricCredential.model_validate(credential)

    def _register(self, db: Session, user_id: int, request: RegistrationVerifyRequest) -> BiometricCredentialModel:
        payload = self.jwt_service.verify_ceremony_token(request.ceremony_token, user_id, PURPOSE_ENROLL)

        result = webauthn.verify_registration(
            credential_id=request.credential_id,
            client_data_json=request.client_data_json,
            authenticator_data=request.authenticator_data,
            public_key=request.public_key,
            public_key_algorithm=request.public_key_algorithm,
            expected_challenge=payload["challenge"],
            rp_id=settings.WEBAUTHN_RP_ID,
            allowed_origins=settings.webauthn_origins_list
        )

        if self.credential_repo.credential_exists(db, result.credential_id):
            raise BiometricGateException(BiometricErrorCode.ALREADY_ENROLLED)

        try:
            with transaction(db):
                self._consume_challenge(db, user_id, payload)
                credential = self.credential_repo.add_credential(db, {
                    "bc_user_id": user_id,
                    "bc_credential_id": result.credential_id,
                    "bc_public_key": result.public_key,
                    "bc_public_key_algorithm": webauthn.COSE_ALG_ES256,
                    "bc_counter": result.sign_count,
                    "bc_transports": ",".join(request.transports) if request.transports else None,
                })
        except IntegrityError:
            raise BiometricGateException(BiometricErrorCode.ALREADY_ENROLLED)

        db.refresh(credential)
        return credential

    def enrollment_status(self, db: Session, user_id: int) -> EnrollmentStatusResponse:
        credentials = self.credential_repo.get_user_credentials(db, user_id)
        remaining = self.enrollment_attempts_remaining(db, user_id)
        return EnrollmentStatusResponse(
            enrolled=bool(credentials),
            credential_count=len(credentials),
            credentials=[BiometricCredential.model_validate(c) for c in credentials],
            attempts_remaining=remaining,
            affordance=Affordance.TROUBLESHOOT.value if remaining == 0 else None
        )

    # ==================== AUTHENTICATION ====================

    def authentication_options(self, db: Session, user_id: int) -> AuthenticationOptionsResponse:
        """
        Issue an assertion challenge restricted to the user's credentials

        Raises:
            BiometricGateException: NO_CREDENTIAL if the user never enrolled
        """
        with self.audit_ceremony(db, user_id, CEREMONY_AUTHENTICATE):
            credentials = self.credential_repo.get_user_credentials(db, user_id)
            if not credentials:
                raise BiometricGateException(BiometricErrorCode.NO_CREDENTIAL)

        ceremony = self.jwt_service.issue_ceremony_token(user_id, PURPOSE_AUTHENTICATE)

        public_key = {
            "challenge": ceremony["challenge"],
            "rpId": settings.WEBAUTHN_RP_ID,
            "allowCredentials": [self._descriptor(c) for c in credentials],
            "userVerification": "required",
            "timeout": settings.CEREMONY_TIMEOUT_SECONDS * 1000,
        }

        return AuthenticationOptionsResponse(
            ceremony_token=ceremony["token"],
            expires_in=ceremony["expires_in"],
            public_key=public_key
        )

    def verify_assertion(self, db: Session, user_id: int, assertion: AssertionPayload) -> VerifiedAssertion:
        """
        Cryptographically verify an assertion without persisting anything

        Call apply_assertion inside the caller's transaction to consume the
        challenge and advance the counter.
        """
        payload = self.jwt_service.verify_ceremony_token(assertion.ceremony_token, user_id, PURPOSE_AUTHENTICATE)

        credential_id = webauthn.b64url_encode(webauthn.b64url_decode(assertion.credential_id))
        credential = self.credential_repo.get_user_credential(db, user_id, credential_id)
        if credential is None:
            raise BiometricGateException(
                BiometricErrorCode.NO_CREDENTIAL,
                "Credential is not enrolled for this account"
            )

        result = webauthn.verify_assertion(
            credential_id=credential_id,
            client_data_json=assertion.client_data_json,
            authenticator_data=assertion.authenticator_data,
            signature=assertion.signature,
            stored_public_key=credential.bc_public_key,
            stored_counter=credential.bc_counter,
            expected_challenge=payload["challenge"],
            rp_id=settings.WEBAUTHN_RP_ID,
            allowed_origins=settings.webauthn_origins_list
        )

        return VerifiedAssertion(jti=payload["jti"], credential=credential, result=result)

    def apply_assertion(self, db: Session, user_id: int, verified: VerifiedAssertion) -> None:
        """Consume the challenge and compare-and-set the counter (no commit)"""
        self._consume_challenge(db, user_id, {"jti": verified.jti, "purpose": PURPOSE_AUTHENTICATE})
        updated = self.credential_repo.advance_counter(
            db,
            verified.credential.bc_id,
            expected_counter=verified.credential.bc_counter,
            new_counter=verified.result.counter,
            used_at=self._now()
        )
        if updated == 0:
            raise BiometricGateException(BiometricErrorCode.COUNTER_REPLAY)

    def record_success(self, db: Session, user_id: int, verified: VerifiedAssertion) -> None:
        self._record_event(
            db, user_id, CEREMONY_AUTHENTICATE, OUTCOME_SUCCESS,
            credential_id=verified.result.credential_id
        )

    def authenticate(self, db: Session, user_id: int, assertion: AssertionPayload) -> AssertionVerifyResponse:
        """Standalone assertion verification (no attendance written)"""
        with self.audit_ceremony(db, user_id, CEREMONY_AUTHENTICATE):
            verified = self.verify_assertion(db, user_id, assertion)
            with transaction(db):
                self.apply_assertion(db, user_id, verified)

        self.record_success(db, user_id, verified)
        return AssertionVerifyResponse(
            verified=verified.result.verified,
            credential_id=verified.result.credential_id,
            counter=verified.result.counter
        )

    # ==================== PLATFORM ERRORS ====================

    def report_ceremony_error(self, db: Session, user_id: int, report: CeremonyErrorReport) -> CeremonyErrorResponse:
        """
        Map a browser DOMException to the gate taxonomy and audit it

        No credential is written. For enrollment the retry cap applies.
        """
        code = code_from_dom_exception(report.error_name)
        detail = f"{report.error_name}: {report.error_message}" if report.error_message else report.error_name
        self._record_event(db, user_id, report.ceremony, code.value, detail)

        affordance = error_affordance(code)
        attempts_remaining = None
        if report.ceremony == CEREMONY_ENROLL:
            attempts_remaining = self.enrollment_attempts_remaining(db, user_id)
            if attempts_remaining == 0:
                affordance = Affordance.TROUBLESHOOT

        logger.info(
            f"Biometric {report.ceremony} failed on device: {code.value}",
            extra={'extra_data': {'user_id': user_id, 'error_name': report.error_name}}
        )

        return CeremonyErrorResponse(
            code=code.value,
            message=error_message(code),
            affordance=affordance.value,
            retryable=affordance in RETRYABLE_AFFORDANCES,
            attempts_remaining=attempts_remaining
        )

    def _descriptor(self, credential: BiometricCredentialModel) -> Dict[str, Any]:
        descriptor: Dict[str, Any] = {"type": "public-key", "id": credential.bc_credential_id}
        if credential.bc_transports:
            descriptor["transports"] = credential.bc_transports.split(",")
        return descriptor
