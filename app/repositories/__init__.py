from .office_location_repository import OfficeLocationRepository
from .attendance_record_repository import AttendanceRecordRepository
from .biometric_credential_repository import BiometricCredentialRepository
from .biometric_event_repository import BiometricEventRepository
from .used_jti_repository import UsedJtiRepository

__all__ = [
    "OfficeLocationRepository",
    "AttendanceRecordRepository",
    "BiometricCredentialRepository",
    "BiometricEventRepository",
    "UsedJtiRepository"
]
