"""
Maintenance Endpoints - System maintenance and cleanup operations
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services.cleanup_service import CleanupService
from app.schemas import DataResponse
from app.api.deps import require_min_role_level, HR_ROLE_LEVEL
from app.core.config import settings
from pydantic import BaseModel

router = APIRouter()
cleanup_service = CleanupService()


class CleanupResult(BaseModel):
    """Cleanup operation result"""
    deleted_count: int
    message: str


@router.post(
    "/cleanup-jti",
    response_model=DataResponse[CleanupResult],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(HR_ROLE_LEVEL))]
)
async def cleanup_jti(
    days_old: int = Query(
        settings.USED_JTI_RETENTION_DAYS, ge=1, le=30,
        description="Delete JTI records older than this many days"
    ),
    db: Session = Depends(get_db)
):
    """
    Clean up consumed ceremony challenges from used_jti table

    **Authorization:**
    - Requires role level >= 50 (HR or above)

    **Parameters:**
    - days_old: Delete records older than X days (default: USED_JTI_RETENTION_DAYS, max: 30)

    **Use case:**
    - Prevent database bloat from single-use challenge tracking
    - Should be run daily via scheduled job
    """
    deleted_count = cleanup_service.cleanup_old_jti(db, days_old=days_old)

    result = CleanupResult(
        deleted_count=deleted_count,
        message=f"Successfully deleted {deleted_count} JTI records older than {days_old} days"
    )

    response = DataResponse(
        success=True,
        message="JTI cleanup completed",
        data=result
    )

    return response
