"""
Office Location Repository - Data access layer for geofence zones
"""
from typing import Optional, List
from sqlalchemy.orm import Session
from sqlalchemy import func

from atams.db import BaseRepository
from app.models.office_location import OfficeLocation


class OfficeLocationRepository(BaseRepository[OfficeLocation]):
    def __init__(self):
        super().__init__(OfficeLocation)

    def get_by_id(self, db: Session, location_id: int) -> Optional[OfficeLocation]:
        """Get office location by ID using ORM"""
        return db.query(OfficeLocation).filter(OfficeLocation.ol_id == location_id).first()

    def get_locations_with_search(
        self,
        db: Session,
        search: str = "",
        active_only: bool = False,
        skip: int = 0,
        limit: int = 100
    ) -> List[OfficeLocation]:
        """Get office locations with optional name search using ORM"""
        query = db.query(OfficeLocation)

        if search:
            query = query.filter(OfficeLocation.ol_name.ilike(f"%{search}%"))
        if active_only:
            query = query.filter(OfficeLocation.ol_is_active.is_(True))

        return query.order_by(OfficeLocation.ol_name.asc(), OfficeLocation.ol_id.asc()).offset(skip).limit(limit).all()

    def count_locations_with_search(self, db: Session, search: str = "", active_only: bool = False) -> int:
        """Count office locations with optional name search using ORM"""
        query = db.query(func.count(OfficeLocation.ol_id))

        if search:
            query = query.filter(OfficeLocation.ol_name.ilike(f"%{search}%"))
        if active_only:
            query = query.filter(OfficeLocation.ol_is_active.is_(True))

        return query.scalar()

    def get_active_locations(self, db: Session) -> List[OfficeLocation]:
        """Active zones in evaluation order (name, then id)"""
        return db.query(OfficeLocation).filter(
            OfficeLocation.ol_is_active.is_(True)
        ).order_by(OfficeLocation.ol_name.asc(), OfficeLocation.ol_id.asc()).all()

    def delete_by_id(self, db: Session, location_id: int) -> bool:
        """Delete office location by ID and return success status"""
        location = self.get_by_id(db, location_id)
        if location:
            db.delete(location)
            db.commit()
            return True
        return False
