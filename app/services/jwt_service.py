"""
JWT Service for WebAuthn ceremony challenge tokens

The challenge issued in the options step is wrapped in a short-lived signed
token so the verify step can check it without server-side session state.
"""
import jwt
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Any

from app.core.config import settings
from app.core.errors import BiometricErrorCode, BiometricGateException
from app.services.webauthn import b64url_encode

ISSUER = "hris-attendance-gate"
PURPOSE_ENROLL = "enroll"
PURPOSE_AUTHENTICATE = "authenticate"
CHALLENGE_BYTES = 32


class JwtService:
    def __init__(self) -> None:
        self.secret = settings.CEREMONY_JWT_SECRET
        self.algorithm = settings.CEREMONY_JWT_ALG
        self.timeout_seconds = settings.CEREMONY_TIMEOUT_SECONDS

    def issue_ceremony_token(self, user_id: int, purpose: str) -> Dict[str, Any]:
        """
        Generate a random challenge and the token that carries it

        Returns:
            dict: {token: str, challenge: str (base64url), jti: str, expires_in: int}
        """
        now = datetime.now(timezone.utc)
        exp = now + timedelta(seconds=self.timeout_seconds)
        challenge = b64url_encode(secrets.token_bytes(CHALLENGE_BYTES))
        jti = str(uuid.uuid4())

        payload = {
            "iss": ISSUER,
            "sub": str(user_id),
            "purpose": purpose,
            "challenge": challenge,
            "jti": jti,
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp())
        }

        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)

        return {
            "token": token,
            "challenge": challenge,
            "jti": jti,
            "expires_in": self.timeout_seconds
        }

    def verify_ceremony_token(self, token: str, user_id: int, purpose: str) -> Dict[str, Any]:
        """
        Verify and decode a ceremony token

        Args:
            token: Token returned by the options endpoint
            user_id: Authenticated user, must match the token subject
            purpose: Expected ceremony purpose

        Returns:
            dict: Decoded payload

        Raises:
            BiometricGateException: CHALLENGE_EXPIRED or INVALID_CEREMONY
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=ISSUER,
                options={"require": ["iss", "sub", "jti", "iat", "exp"]}
            )
        except jwt.ExpiredSignatureError:
            raise BiometricGateException(BiometricErrorCode.CHALLENGE_EXPIRED)
        except jwt.InvalidTokenError as e:
            raise BiometricGateException(BiometricErrorCode.INVALID_CEREMONY, f"Invalid ceremony token: {str(e)}")

        if payload.get("purpose") != purpose:
            raise BiometricGateException(BiometricErrorCode.INVALID_CEREMONY, "Ceremony token purpose mismatch")
        if payload.get("sub") != str(user_id):
            raise BiometricGateException(BiometricErrorCode.INVALID_CEREMONY, "Ceremony token belongs to another user")
        if not payload.get("challenge"):
            raise BiometricGateException(BiometricErrorCode.INVALID_CEREMONY, "Ceremony token has no challenge")

        return payload
