"""
Office Location Service - Business logic for geofence zone management
"""
from typing import List
from sqlalchemy.orm import Session

from atams.exceptions import NotFoundException
from atams.logging import get_logger

from app.core.config import settings
from app.repositories.office_location_repository import OfficeLocationRepository
from app.schemas.office_location import OfficeLocation, OfficeLocationCreate, OfficeLocationUpdate

logger = get_logger(__name__)


class OfficeLocationService:
    def __init__(self) -> None:
        self.repo = OfficeLocationRepository()

    def list_locations(
        self,
        db: Session,
        search: str = "",
        active_only: bool = False,
        skip: int = 0,
        limit: int = 100
    ) -> List[OfficeLocation]:
        locations = self.repo.get_locations_with_search(
            db, search=search, active_only=active_only, skip=skip, limit=limit
        )
        return [OfficeLocation.model_validate(loc) for loc in locations]

    def count_locations(self, db: Session, search: str = "", active_only: bool = False) -> int:
        return self.repo.count_locations_with_search(db, search=search, active_only=active_only)

    def get_location(self, db: Session, location_id: int) -> OfficeLocation:
        location = self.repo.get_by_id(db, location_id)
        if not location:
            raise NotFoundException("Office location not found")
        return OfficeLocation.model_validate(location)

    def create_location(self, db: Session, payload: OfficeLocationCreate) -> OfficeLocation:
        data = payload.model_dump()
        if data["ol_radius_meters"] is None:
            data["ol_radius_meters"] = settings.DEFAULT_GEOFENCE_RADIUS_M

        obj = self.repo.create(db, data)
        logger.info(
            "Office location created",
            extra={'extra_data': {'ol_id': obj.ol_id, 'ol_name': obj.ol_name, 'radius_m': obj.ol_radius_meters}}
        )
        return OfficeLocation.model_validate(obj)

    def update_location(self, db: Session, location_id: int, payload: OfficeLocationUpdate) -> OfficeLocation:
        obj = self.repo.get_by_id(db, location_id)
        if not obj:
            raise NotFoundException("Office location not found")
        update_data = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
        obj = self.repo.update(db, obj, update_data)
        return OfficeLocation.model_validate(obj)

    def delete_location(self, db: Session, location_id: int) -> None:
        # attendance stores the location name by value, no FK to clear
        deleted = self.repo.delete_by_id(db, location_id)
        if not deleted:
            raise NotFoundException("Office location not found")
        logger.info("Office location deleted", extra={'extra_data': {'ol_id': location_id}})
        return None
