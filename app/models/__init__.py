from .office_location import OfficeLocation
from .attendance_record import AttendanceRecord
from .biometric_credential import BiometricCredential
from .biometric_event import BiometricEvent
from .used_jti import UsedJti

__all__ = [
    "OfficeLocation",
    "AttendanceRecord",
    "BiometricCredential",
    "BiometricEvent",
    "UsedJti"
]
