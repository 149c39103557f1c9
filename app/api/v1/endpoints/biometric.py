"""
Biometric Endpoints - WebAuthn platform authenticator enrollment and verification
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services.biometric_service import BiometricService
from app.schemas import (
    AssertionPayload,
    AssertionVerifyResponse,
    AuthenticationOptionsResponse,
    BiometricCredential,
    CeremonyErrorReport,
    CeremonyErrorResponse,
    EnrollmentStatusResponse,
    RegistrationOptionsResponse,
    RegistrationVerifyRequest,
    DataResponse
)
from app.api.deps import require_auth, require_min_role_level, EMPLOYEE_ROLE_LEVEL
from app.core.config import settings
from atams.encryption import encrypt_response_data

router = APIRouter()
biometric_service = BiometricService()


@router.get(
    "/enrollment",
    response_model=DataResponse[EnrollmentStatusResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def get_enrollment_status(
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Whether the current user has an enrolled platform authenticator
    """
    enrollment = biometric_service.enrollment_status(db, current_user["user_id"])

    response = DataResponse(
        success=True,
        message="Enrollment status retrieved successfully",
        data=enrollment
    )

    return encrypt_response_data(response, settings)


@router.post(
    "/registration/options",
    response_model=DataResponse[RegistrationOptionsResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def get_registration_options(
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Start enrollment: challenge and PublicKeyCredentialCreationOptions

    **Response:**
    - ceremony_token: send back unchanged to /registration/verify
    - public_key: pass to navigator.credentials.create({publicKey})

    **Errors:**
    - 429: Enrollment attempt cap reached (affordance: troubleshoot)
    """
    options = biometric_service.registration_options(
        db,
        current_user["user_id"],
        username=current_user.get("username") or str(current_user["user_id"]),
        display_name=current_user.get("full_name")
    )

    return DataResponse(
        success=True,
        message="Registration options generated successfully",
        data=options
    )


@router.post(
    "/registration/verify",
    response_model=DataResponse[BiometricCredential],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def verify_registration(
    request: RegistrationVerifyRequest,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Finish enrollment: verify the new credential and store its public key

    **Errors:**
    - 400: Malformed or mismatched ceremony, expired challenge
    - 409: Credential already enrolled, challenge replayed
    - 422: Device did not provide a public key via getPublicKey()
    """
    credential = biometric_service.verify_registration(db, current_user["user_id"], request)

    return DataResponse(
        success=True,
        message="Biometric credential enrolled successfully",
        data=credential
    )


@router.post(
    "/authentication/options",
    response_model=DataResponse[AuthenticationOptionsResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def get_authentication_options(
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Start authentication: challenge restricted to the user's credentials

    The resulting assertion can be sent to /authentication/verify or
    embedded as `biometric` in a check-in/checkout request.

    **Errors:**
    - 404: No enrolled credential (affordance: fallback_manual)
    """
    options = biometric_service.authentication_options(db, current_user["user_id"])

    return DataResponse(
        success=True,
        message="Authentication options generated successfully",
        data=options
    )


@router.post(
    "/authentication/verify",
    response_model=DataResponse[AssertionVerifyResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def verify_authentication(
    assertion: AssertionPayload,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Verify an assertion without recording attendance

    **Errors:**
    - 403: Signature invalid, user not verified, counter did not advance
    - 409: Challenge replayed
    """
    result = biometric_service.authenticate(db, current_user["user_id"], assertion)

    return DataResponse(
        success=True,
        message="Biometric verification successful",
        data=result
    )


@router.post(
    "/ceremony-errors",
    response_model=DataResponse[CeremonyErrorResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def report_ceremony_error(
    report: CeremonyErrorReport,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Report a platform failure (DOMException) and get the UI guidance

    **Mapping:**
    - NotAllowedError -> permission_denied (retry)
    - NotSupportedError -> unsupported (fallback_manual)
    - SecurityError -> insecure_context (fallback_manual)
    - InvalidStateError -> already_enrolled (fallback_manual)
    - AbortError, TimeoutError -> timeout (retry)
    """
    result = biometric_service.report_ceremony_error(db, current_user["user_id"], report)

    return DataResponse(
        success=True,
        message=result.message,
        data=result
    )
