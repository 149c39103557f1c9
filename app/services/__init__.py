from .office_location_service import OfficeLocationService
from .jwt_service import JwtService
from .biometric_service import BiometricService
from .attendance_service import AttendanceService
from .cleanup_service import CleanupService

__all__ = [
    "OfficeLocationService",
    "JwtService",
    "BiometricService",
    "AttendanceService",
    "CleanupService"
]
