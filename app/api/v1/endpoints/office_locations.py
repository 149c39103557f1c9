"""
Office Location Endpoints - CRUD operations for geofence zones
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services.office_location_service import OfficeLocationService
from app.schemas import (
    OfficeLocation,
    OfficeLocationCreate,
    OfficeLocationUpdate,
    DataResponse,
    PaginationResponse
)
from app.api.deps import require_auth, require_min_role_level, HR_ROLE_LEVEL
from app.core.config import settings
from atams.encryption import encrypt_response_data

router = APIRouter()
office_location_service = OfficeLocationService()


@router.get(
    "/",
    response_model=PaginationResponse[OfficeLocation],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(HR_ROLE_LEVEL))]
)
async def list_office_locations(
    search: str = Query("", description="Search locations by name"),
    active_only: bool = Query(False, description="Only return active locations"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get list of office locations with pagination and search

    **Authorization:**
    - Requires role level >= 50 (HR or above)
    """
    locations = office_location_service.list_locations(
        db, search=search, active_only=active_only, skip=skip, limit=limit
    )
    total = office_location_service.count_locations(db, search=search, active_only=active_only)

    response = PaginationResponse(
        success=True,
        message="Office locations retrieved successfully",
        data=locations,
        total=total,
        page=skip // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/{location_id}",
    response_model=DataResponse[OfficeLocation],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(HR_ROLE_LEVEL))]
)
async def get_office_location(
    location_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get single office location by ID

    **Authorization:**
    - Requires role level >= 50 (HR or above)
    """
    location = office_location_service.get_location(db, location_id)

    response = DataResponse(
        success=True,
        message="Office location retrieved successfully",
        data=location
    )

    return encrypt_response_data(response, settings)


@router.post(
    "/",
    response_model=DataResponse[OfficeLocation],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_min_role_level(HR_ROLE_LEVEL))]
)
async def create_office_location(
    location: OfficeLocationCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Create new office location

    **Authorization:**
    - Requires role level >= 50 (HR or above)

    **Validation:**
    - ol_name: required, not blank
    - ol_latitude: [-90, 90], ol_longitude: [-180, 180], finite
    - ol_radius_meters: > 0, defaults to DEFAULT_GEOFENCE_RADIUS_M
    """
    new_location = office_location_service.create_location(db, location)

    return DataResponse(
        success=True,
        message="Office location created successfully",
        data=new_location
    )


@router.put(
    "/{location_id}",
    response_model=DataResponse[OfficeLocation],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(HR_ROLE_LEVEL))]
)
async def update_office_location(
    location_id: int,
    location: OfficeLocationUpdate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Update existing office location

    **Authorization:**
    - Requires role level >= 50 (HR or above)

    **Updateable fields:**
    - ol_name, ol_latitude, ol_longitude, ol_radius_meters, ol_address
    - ol_is_active: set false to take a zone out of geofence evaluation
    """
    updated_location = office_location_service.update_location(db, location_id, location)

    return DataResponse(
        success=True,
        message="Office location updated successfully",
        data=updated_location
    )


@router.delete(
    "/{location_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_min_role_level(HR_ROLE_LEVEL))]
)
async def delete_office_location(
    location_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Delete office location

    **Authorization:**
    - Requires role level >= 50 (HR or above)
    """
    office_location_service.delete_location(db, location_id)

    # 204 returns no content
    return None
