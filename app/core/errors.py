"""
Biometric gate error taxonomy

Every failure of the enrollment or authentication ceremony is reduced to a
BiometricErrorCode. Each code carries the message shown to the employee and
the affordance the UI should offer next.
"""
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import status

from atams.exceptions import AppException


class BiometricErrorCode(str, Enum):
    # Raised by the platform authenticator in the browser
    UNSUPPORTED = "unsupported"
    PERMISSION_DENIED = "permission_denied"
    NO_CREDENTIAL = "no_credential"
    ALREADY_ENROLLED = "already_enrolled"
    INSECURE_CONTEXT = "insecure_context"
    TIMEOUT = "timeout"
    # Raised by server-side verification
    INVALID_CEREMONY = "invalid_ceremony"
    CHALLENGE_EXPIRED = "challenge_expired"
    CHALLENGE_REPLAYED = "challenge_replayed"
    VERIFICATION_FAILED = "verification_failed"
    COUNTER_REPLAY = "counter_replay"
    PUBLIC_KEY_UNAVAILABLE = "public_key_unavailable"
    TOO_MANY_ATTEMPTS = "too_many_attempts"


class Affordance(str, Enum):
    RETRY = "retry"
    FALLBACK_MANUAL = "fallback_manual"
    TROUBLESHOOT = "troubleshoot"


# code -> (http status, message, affordance)
_ERROR_TABLE = {
    BiometricErrorCode.UNSUPPORTED: (
        status.HTTP_400_BAD_REQUEST,
        "Biometric authentication is not supported on this device or browser",
        Affordance.FALLBACK_MANUAL,
    ),
    BiometricErrorCode.PERMISSION_DENIED: (
        status.HTTP_400_BAD_REQUEST,
        "Biometric prompt was cancelled or denied. Please try again",
        Affordance.RETRY,
    ),
    BiometricErrorCode.NO_CREDENTIAL: (
        status.HTTP_404_NOT_FOUND,
        "No biometric credential is enrolled for this account",
        Affordance.FALLBACK_MANUAL,
    ),
    BiometricErrorCode.ALREADY_ENROLLED: (
        status.HTTP_409_CONFLICT,
        "This device is already enrolled for biometric attendance",
        Affordance.FALLBACK_MANUAL,
    ),
    BiometricErrorCode.INSECURE_CONTEXT: (
        status.HTTP_400_BAD_REQUEST,
        "Biometric authentication requires a secure (HTTPS) connection",
        Affordance.FALLBACK_MANUAL,
    ),
    BiometricErrorCode.TIMEOUT: (
        status.HTTP_400_BAD_REQUEST,
        "Biometric prompt timed out. Please try again",
        Affordance.RETRY,
    ),
    BiometricErrorCode.INVALID_CEREMONY: (
        status.HTTP_400_BAD_REQUEST,
        "Biometric response is malformed or does not match this request",
        Affordance.RETRY,
    ),
    BiometricErrorCode.CHALLENGE_EXPIRED: (
        status.HTTP_400_BAD_REQUEST,
        "Biometric challenge expired. Please start again",
        Affordance.RETRY,
    ),
    BiometricErrorCode.CHALLENGE_REPLAYED: (
        status.HTTP_409_CONFLICT,
        "Biometric challenge was already used",
        Affordance.RETRY,
    ),
    BiometricErrorCode.VERIFICATION_FAILED: (
        status.HTTP_403_FORBIDDEN,
        "Biometric verification failed",
        Affordance.RETRY,
    ),
    BiometricErrorCode.COUNTER_REPLAY: (
        status.HTTP_403_FORBIDDEN,
        "Authenticator signature counter did not advance; the credential may be cloned",
        Affordance.TROUBLESHOOT,
    ),
    BiometricErrorCode.PUBLIC_KEY_UNAVAILABLE: (
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "This device did not provide a usable public key for enrollment",
        Affordance.FALLBACK_MANUAL,
    ),
    BiometricErrorCode.TOO_MANY_ATTEMPTS: (
        status.HTTP_429_TOO_MANY_REQUESTS,
        "Too many failed enrollment attempts. Check device settings or contact HR",
        Affordance.TROUBLESHOOT,
    ),
}

# Browser DOMException names raised by navigator.credentials.create/get
_DOM_EXCEPTION_CODES = {
    "NotAllowedError": BiometricErrorCode.PERMISSION_DENIED,
    "NotSupportedError": BiometricErrorCode.UNSUPPORTED,
    "SecurityError": BiometricErrorCode.INSECURE_CONTEXT,
    "InvalidStateError": BiometricErrorCode.ALREADY_ENROLLED,
    "AbortError": BiometricErrorCode.TIMEOUT,
    "TimeoutError": BiometricErrorCode.TIMEOUT,
}

RETRYABLE_AFFORDANCES = {Affordance.RETRY}


def error_message(code: BiometricErrorCode) -> str:
    return _ERROR_TABLE[code][1]


def error_affordance(code: BiometricErrorCode) -> Affordance:
    return _ERROR_TABLE[code][2]


def code_from_dom_exception(name: str) -> BiometricErrorCode:
    """
    Map a browser DOMException name to a gate error code

    Unknown names are treated as an unsupported platform.
    """
    return _DOM_EXCEPTION_CODES.get(name, BiometricErrorCode.UNSUPPORTED)


class BiometricGateException(AppException):
    """Biometric ceremony rejected; details carry code and affordance"""

    def __init__(
        self,
        code: BiometricErrorCode,
        message: Optional[str] = None,
        affordance: Optional[Affordance] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        status_code, default_message, default_affordance = _ERROR_TABLE[code]
        self.code = code
        self.affordance = affordance or default_affordance
        payload = {
            "code": code.value,
            "affordance": self.affordance.value,
            "retryable": self.affordance in RETRYABLE_AFFORDANCES,
        }
        if details:
            payload.update(details)
        super().__init__(message or default_message, status_code, payload)
