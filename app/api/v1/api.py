from fastapi import APIRouter
from app.api.v1.endpoints import office_locations, attendance, biometric, maintenance

api_router = APIRouter()

# Register routes
api_router.include_router(office_locations.router, prefix="/office-locations", tags=["Office Locations"])
api_router.include_router(attendance.router, prefix="/attendance", tags=["Attendance"])
api_router.include_router(biometric.router, prefix="/biometric", tags=["Biometric"])
api_router.include_router(maintenance.router, prefix="/maintenance", tags=["Maintenance"])
