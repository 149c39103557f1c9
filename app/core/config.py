import json
from datetime import time
from typing import List

from pydantic import model_validator

from atams import AtamsBaseSettings


class Settings(AtamsBaseSettings):
    """
    Application Settings

    Inherits from AtamsBaseSettings which includes:
    - DATABASE_URL (required)
    - ATLAS_SSO_URL, ATLAS_APP_CODE, ATLAS_ENCRYPTION_KEY, ATLAS_ENCRYPTION_IV
    - ENCRYPTION_ENABLED, ENCRYPTION_KEY, ENCRYPTION_IV (response encryption)
    - LOGGING_ENABLED, LOG_LEVEL, LOG_TO_FILE, LOG_FILE_PATH
    - CORS_ORIGINS, CORS_ALLOW_CREDENTIALS, CORS_ALLOW_METHODS, CORS_ALLOW_HEADERS
    - RATE_LIMIT_ENABLED, RATE_LIMIT_REQUESTS, RATE_LIMIT_WINDOW
    - DEBUG

    All settings can be overridden via .env file or by redefining them here.
    """
    APP_NAME: str = "HRMS Attendance Gate"
    APP_VERSION: str = "1.0.0"

    # Ceremony challenge tokens (WebAuthn options -> verify round trip)
    CEREMONY_JWT_SECRET: str
    CEREMONY_JWT_ALG: str = "HS256"
    CEREMONY_TIMEOUT_SECONDS: int = 60

    # WebAuthn relying party
    WEBAUTHN_RP_ID: str = "localhost"
    WEBAUTHN_RP_NAME: str = "HRMS Attendance"
    WEBAUTHN_ORIGINS: str = '["http://localhost:3000"]'

    # Biometric gate
    BIOMETRIC_REQUIRED: bool = False
    BIOMETRIC_MAX_ENROLL_ATTEMPTS: int = 3

    # Geofence settings
    GEOFENCE_ENFORCED: bool = True
    DEFAULT_GEOFENCE_RADIUS_M: int = 100

    # Attendance policy
    ATTENDANCE_TIMEZONE: str = "Asia/Kolkata"
    WORKDAY_START: time = time(9, 0)
    LATE_GRACE_MINUTES: int = 30

    # Maintenance
    USED_JTI_RETENTION_DAYS: int = 7

    @model_validator(mode="after")
    def check_late_threshold(self) -> "Settings":
        """The late threshold must fall on the same day as WORKDAY_START"""
        start_minutes = self.WORKDAY_START.hour * 60 + self.WORKDAY_START.minute
        if self.LATE_GRACE_MINUTES < 0 or start_minutes + self.LATE_GRACE_MINUTES >= 24 * 60:
            raise ValueError("WORKDAY_START + LATE_GRACE_MINUTES must not cross midnight")
        return self

    @property
    def webauthn_origins_list(self) -> List[str]:
        """Origins accepted in clientDataJSON"""
        origins = json.loads(self.WEBAUTHN_ORIGINS)
        if isinstance(origins, str):
            return [origins]
        return list(origins)


settings = Settings()
