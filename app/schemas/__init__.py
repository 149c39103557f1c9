from .office_location import (
    OfficeLocation,
    OfficeLocationCreate,
    OfficeLocationUpdate
)
from .attendance import (
    GeoPosition,
    LocationCheckRequest,
    LocationCheckResponse,
    CheckInRequest,
    CheckOutRequest,
    AttendanceRecord,
    TodayAttendanceResponse,
    AttendanceSummary,
    AttendanceStatusUpdate
)
from .biometric import (
    AssertionPayload,
    AssertionVerifyResponse,
    AuthenticationOptionsResponse,
    BiometricCredential,
    CeremonyErrorReport,
    CeremonyErrorResponse,
    EnrollmentStatusResponse,
    RegistrationOptionsResponse,
    RegistrationVerifyRequest
)
from .common import DataResponse, PaginationResponse

__all__ = [
    # Office location schemas
    "OfficeLocation",
    "OfficeLocationCreate",
    "OfficeLocationUpdate",
    # Attendance schemas
    "GeoPosition",
    "LocationCheckRequest",
    "LocationCheckResponse",
    "CheckInRequest",
    "CheckOutRequest",
    "AttendanceRecord",
    "TodayAttendanceResponse",
    "AttendanceSummary",
    "AttendanceStatusUpdate",
    # Biometric schemas
    "AssertionPayload",
    "AssertionVerifyResponse",
    "AuthenticationOptionsResponse",
    "BiometricCredential",
    "CeremonyErrorReport",
    "CeremonyErrorResponse",
    "EnrollmentStatusResponse",
    "RegistrationOptionsResponse",
    "RegistrationVerifyRequest",
    # Common schemas
    "DataResponse",
    "PaginationResponse"
]
