"""
Biometric Schemas for WebAuthn ceremonies

WebAuthn option structures keep the browser API's camelCase names so the
frontend can pass them to navigator.credentials unchanged.
"""
from typing import List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import normalize_pg_timezone


class RelyingParty(BaseModel):
    id: str
    name: str


class UserEntity(BaseModel):
    id: str  # base64url user handle
    name: str
    displayName: str


class CredentialParameter(BaseModel):
    type: Literal["public-key"] = "public-key"
    alg: int = -7


class CredentialDescriptor(BaseModel):
    type: Literal["public-key"] = "public-key"
    id: str
    transports: Optional[List[str]] = None


class AuthenticatorSelection(BaseModel):
    authenticatorAttachment: Literal["platform"] = "platform"
    userVerification: Literal["required", "preferred", "discouraged"] = "required"
    residentKey: Literal["required", "preferred", "discouraged"] = "preferred"


class CreationOptions(BaseModel):
    challenge: str
    rp: RelyingParty
    user: UserEntity
    pubKeyCredParams: List[CredentialParameter]
    authenticatorSelection: AuthenticatorSelection
    timeout: int  # milliseconds
    attestation: Literal["none"] = "none"
    excludeCredentials: List[CredentialDescriptor] = []


class RequestOptions(BaseModel):
    challenge: str
    rpId: str
    allowCredentials: List[CredentialDescriptor]
    userVerification: Literal["required", "preferred", "discouraged"] = "required"
    timeout: int


class RegistrationOptionsResponse(BaseModel):
    ceremony_token: str
    expires_in: int
    public_key: CreationOptions


class AuthenticationOptionsResponse(BaseModel):
    ceremony_token: str
    expires_in: int
    public_key: RequestOptions


class RegistrationVerifyRequest(BaseModel):
    """Result of navigator.credentials.create(), binary fields base64url encoded"""
    ceremony_token: str
    credential_id: str = Field(..., min_length=1)
    client_data_json: str
    authenticator_data: str
    public_key: Optional[str] = Field(None, description="response.getPublicKey() (SubjectPublicKeyInfo)")
    public_key_algorithm: int = Field(-7, description="response.getPublicKeyAlgorithm()")
    transports: Optional[List[str]] = None


class AssertionPayload(BaseModel):
    """Result of navigator.credentials.get(), binary fields base64url encoded"""
    ceremony_token: str
    credential_id: str = Field(..., min_length=1)
    client_data_json: str
    authenticator_data: str
    signature: str
    user_handle: Optional[str] = None


class AssertionVerifyResponse(BaseModel):
    verified: bool
    credential_id: str
    counter: int


class CeremonyErrorReport(BaseModel):
    """Platform failure reported by the browser (DOMException name)"""
    ceremony: Literal["enroll", "authenticate"]
    error_name: str = Field(..., min_length=1, max_length=64)
    error_message: Optional[str] = Field(None, max_length=500)


class CeremonyErrorResponse(BaseModel):
    code: str
    message: str
    affordance: Literal["retry", "fallback_manual", "troubleshoot"]
    retryable: bool
    attempts_remaining: Optional[int] = None


class BiometricCredentialBase(BaseModel):
    bc_credential_id: str
    bc_public_key_algorithm: int
    bc_counter: int
    bc_transports: Optional[str] = None


class BiometricCredentialInDB(BiometricCredentialBase):
    model_config = ConfigDict(from_attributes=True)

    bc_id: int
    bc_user_id: int
    bc_created_at: datetime
    bc_updated_at: Optional[datetime] = None
    bc_last_used_at: Optional[datetime] = None

    @field_validator('bc_created_at', 'bc_updated_at', 'bc_last_used_at', mode='before')
    @classmethod
    def fix_datetime_timezone(cls, v):
        return normalize_pg_timezone(v)


class BiometricCredential(BiometricCredentialInDB):
    pass


class EnrollmentStatusResponse(BaseModel):
    enrolled: bool
    credential_count: int
    credentials: List[BiometricCredential] = []
    attempts_remaining: int
    affordance: Optional[Literal["retry", "fallback_manual", "troubleshoot"]] = None
