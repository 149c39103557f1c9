"""
WebAuthn ceremony verification for platform authenticators (ES256 only)

Verifies the browser's clientDataJSON and authenticatorData against the
challenge issued by the server and, for assertions, the ECDSA P-256
signature with the enrolled public key.
"""
import base64
import binascii
import hashlib
import hmac
import json
import struct
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from Crypto.Hash import SHA256
from Crypto.PublicKey import ECC
from Crypto.Signature import DSS

from app.core.errors import BiometricErrorCode, BiometricGateException

COSE_ALG_ES256 = -7

FLAG_USER_PRESENT = 0x01
FLAG_USER_VERIFIED = 0x04
FLAG_ATTESTED_CREDENTIAL_DATA = 0x40

TYPE_CREATE = "webauthn.create"
TYPE_GET = "webauthn.get"

_P256_NAMES = {"NIST P-256", "P-256", "p256", "prime256v1", "secp256r1"}
_AUTH_DATA_MIN_LENGTH = 37


@dataclass(frozen=True)
class AuthenticatorData:
    rp_id_hash: bytes
    flags: int
    sign_count: int
    credential_id: Optional[bytes] = None

    @property
    def user_present(self) -> bool:
        return bool(self.flags & FLAG_USER_PRESENT)

    @property
    def user_verified(self) -> bool:
        return bool(self.flags & FLAG_USER_VERIFIED)


@dataclass(frozen=True)
class RegistrationResult:
    credential_id: str
    public_key: str
    sign_count: int


@dataclass(frozen=True)
class AssertionResult:
    verified: bool
    credential_id: str
    counter: int


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(value: str) -> bytes:
    """Decode base64url (or standard base64) with or without padding"""
    if not isinstance(value, str) or not value:
        raise BiometricGateException(BiometricErrorCode.INVALID_CEREMONY, "Empty or non-text base64 value")
    normalized = value.strip().replace("+", "-").replace("/", "_")
    padding = "=" * (-len(normalized) % 4)
    try:
        return base64.urlsafe_b64decode(normalized + padding)
    except (binascii.Error, ValueError):
        raise BiometricGateException(BiometricErrorCode.INVALID_CEREMONY, "Invalid base64url encoding")


def parse_client_data(client_data_json: bytes) -> Dict[str, Any]:
    try:
        client_data = json.loads(client_data_json.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        raise BiometricGateException(BiometricErrorCode.INVALID_CEREMONY, "clientDataJSON is not valid JSON")
    if not isinstance(client_data, dict):
        raise BiometricGateException(BiometricErrorCode.INVALID_CEREMONY, "clientDataJSON must be an object")
    return client_data


def verify_client_data(
    client_data: Dict[str, Any],
    expected_type: str,
    expected_challenge: str,
    allowed_origins: Iterable[str]
) -> None:
    """
    Check ceremony type, challenge and origin of a parsed clientDataJSON

    Raises:
        BiometricGateException: INVALID_CEREMONY on any mismatch
    """
    if client_data.get("type") != expected_type:
        raise BiometricGateException(
            BiometricErrorCode.INVALID_CEREMONY,
            f"Unexpected ceremony type, expected {expected_type}"
        )

    challenge = client_data.get("challenge")
    if not isinstance(challenge, str) or not hmac.compare_digest(
        b64url_decode(challenge), b64url_decode(expected_challenge)
    ):
        raise BiometricGateException(BiometricErrorCode.INVALID_CEREMONY, "Challenge mismatch")

    origin = client_data.get("origin")
    if not isinstance(origin, str) or origin not in set(allowed_origins):
        raise BiometricGateException(
            BiometricErrorCode.INVALID_CEREMONY,
            "Origin not allowed",
            details={"origin": origin if isinstance(origin, str) else None}
        )


def parse_authenticator_data(auth_data: bytes) -> AuthenticatorData:
    """
    Parse the fixed header of authenticatorData

    Layout: rpIdHash (32) | flags (1) | signCount (4, big endian) |
    attested credential data when the AT flag is set:
    aaguid (16) | credentialIdLength (2) | credentialId.
    """
    if len(auth_data) < _AUTH_DATA_MIN_LENGTH:
        raise BiometricGateException(BiometricErrorCode.INVALID_CEREMONY, "authenticatorData too short")

    rp_id_hash = auth_data[:32]
    flags = auth_data[32]
    sign_count = struct.unpack(">I", auth_data[33:37])[0]

    credential_id = None
    if flags & FLAG_ATTESTED_CREDENTIAL_DATA:
        offset = _AUTH_DATA_MIN_LENGTH + 16
        if len(auth_data) < offset + 2:
            raise BiometricGateException(BiometricErrorCode.INVALID_CEREMONY, "Attested credential data truncated")
        cred_len = struct.unpack(">H", auth_data[offset:offset + 2])[0]
        credential_id = auth_data[offset + 2:offset + 2 + cred_len]
        if len(credential_id) != cred_len:
            raise BiometricGateException(BiometricErrorCode.INVALID_CEREMONY, "Credential id truncated")

    return AuthenticatorData(
        rp_id_hash=rp_id_hash,
        flags=flags,
        sign_count=sign_count,
        credential_id=credential_id
    )


def verify_authenticator_data(data: AuthenticatorData, rp_id: str, require_user_verification: bool = True) -> None:
    expected_hash = hashlib.sha256(rp_id.encode("utf-8")).digest()
    if not hmac.compare_digest(data.rp_id_hash, expected_hash):
        raise BiometricGateException(BiometricErrorCode.INVALID_CEREMONY, "Relying party id mismatch")
    if not data.user_present:
        raise BiometricGateException(BiometricErrorCode.VERIFICATION_FAILED, "User presence was not asserted")
    if require_user_verification and not data.user_verified:
        raise BiometricGateException(BiometricErrorCode.VERIFICATION_FAILED, "User verification was not performed")


def load_public_key(public_key: Optional[str]) -> ECC.EccKey:
    """
    Import a base64url SubjectPublicKeyInfo as produced by getPublicKey()

    Raises:
        BiometricGateException: PUBLIC_KEY_UNAVAILABLE if missing, not DER
        or not a P-256 key
    """
    if not public_key:
        raise BiometricGateException(BiometricErrorCode.PUBLIC_KEY_UNAVAILABLE)
    try:
        key = ECC.import_key(b64url_decode(public_key))
    except BiometricGateException:
        raise BiometricGateException(BiometricErrorCode.PUBLIC_KEY_UNAVAILABLE, "Public key is not valid base64url")
    except (ValueError, IndexError, TypeError):
        raise BiometricGateException(BiometricErrorCode.PUBLIC_KEY_UNAVAILABLE, "Public key is not a valid SubjectPublicKeyInfo")
    if key.curve not in _P256_NAMES:
        raise BiometricGateException(BiometricErrorCode.PUBLIC_KEY_UNAVAILABLE, "Only ES256 (P-256) keys are supported")
    if key.has_private():
        raise BiometricGateException(BiometricErrorCode.PUBLIC_KEY_UNAVAILABLE, "Private key material is not accepted")
    return key


def check_counter(stored: int, presented: int) -> None:
    """
    Signature counter rule

    Authenticators reporting 0 on both sides do not implement counters and
    are accepted. Otherwise the presented counter must strictly increase.
    """
    if stored == 0 and presented == 0:
        return
    if presented <= stored:
        raise BiometricGateException(
            BiometricErrorCode.COUNTER_REPLAY,
            details={"stored_counter": stored, "presented_counter": presented}
        )


def verify_registration(
    credential_id: str,
    client_data_json: str,
    authenticator_data: str,
    public_key: Optional[str],
    public_key_algorithm: int,
    expected_challenge: str,
    rp_id: str,
    allowed_origins: Iterable[str],
    require_user_verification: bool = True
) -> RegistrationResult:
    """
    Verify the result of navigator.credentials.create()

    The public key must come from the standard getPublicKey() accessor.

    Returns:
        RegistrationResult: normalized credential id, public key and initial counter

    Raises:
        BiometricGateException: On any verification failure
    """
    if public_key_algorithm != COSE_ALG_ES256:
        raise BiometricGateException(BiometricErrorCode.UNSUPPORTED, "Only ES256 credentials are supported")

    key = load_public_key(public_key)

    client_data = parse_client_data(b64url_decode(client_data_json))
    verify_client_data(client_data, TYPE_CREATE, expected_challenge, allowed_origins)

    auth_data = parse_authenticator_data(b64url_decode(authenticator_data))
    verify_authenticator_data(auth_data, rp_id, require_user_verification)

    raw_credential_id = b64url_decode(credential_id)
    if auth_data.credential_id is not None and not hmac.compare_digest(auth_data.credential_id, raw_credential_id):
        raise BiometricGateException(BiometricErrorCode.INVALID_CEREMONY, "Credential id mismatch")

    spki = key.export_key(format="DER")
    return RegistrationResult(
        credential_id=b64url_encode(raw_credential_id),
        public_key=base64.b64encode(spki).decode("ascii"),
        sign_count=auth_data.sign_count
    )


def verify_assertion(
    credential_id: str,
    client_data_json: str,
    authenticator_data: str,
    signature: str,
    stored_public_key: str,
    stored_counter: int,
    expected_challenge: str,
    rp_id: str,
    allowed_origins: Iterable[str],
    require_user_verification: bool = True
) -> AssertionResult:
    """
    Verify the result of navigator.credentials.get()

    Checks clientDataJSON, authenticatorData flags, the ECDSA signature over
    authenticatorData || SHA-256(clientDataJSON) and the signature counter.

    Returns:
        AssertionResult: verified flag, credential id and the new counter

    Raises:
        BiometricGateException: On any verification failure
    """
    client_data_bytes = b64url_decode(client_data_json)
    client_data = parse_client_data(client_data_bytes)
    verify_client_data(client_data, TYPE_GET, expected_challenge, allowed_origins)

    auth_data_bytes = b64url_decode(authenticator_data)
    auth_data = parse_authenticator_data(auth_data_bytes)
    verify_authenticator_data(auth_data, rp_id, require_user_verification)

    key = ECC.import_key(base64.b64decode(stored_public_key))
    signed = auth_data_bytes + hashlib.sha256(client_data_bytes).digest()
    verifier = DSS.new(key, "fips-186-3", encoding="der")
    try:
        verifier.verify(SHA256.new(signed), b64url_decode(signature))
    except ValueError:
        raise BiometricGateException(BiometricErrorCode.VERIFICATION_FAILED, "Signature verification failed")

    check_counter(stored_counter, auth_data.sign_count)

    return AssertionResult(
        verified=True,
        credential_id=b64url_encode(b64url_decode(credential_id)),
        counter=auth_data.sign_count
    )
