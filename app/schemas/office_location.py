"""
Office Location Schemas for request/response validation
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import normalize_pg_timezone


class OfficeLocationBase(BaseModel):
    ol_name: str = Field(..., min_length=1, max_length=255)
    ol_latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    ol_longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
    ol_radius_meters: int = Field(100, gt=0, description="Geofence radius in meters")
    ol_address: Optional[str] = None
    ol_is_active: bool = True

    @field_validator('ol_name')
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("ol_name must not be blank")
        return v


class OfficeLocationCreate(OfficeLocationBase):
    ol_radius_meters: Optional[int] = Field(None, gt=0, description="Defaults to DEFAULT_GEOFENCE_RADIUS_M")


class OfficeLocationUpdate(BaseModel):
    ol_name: Optional[str] = Field(None, min_length=1, max_length=255)
    ol_latitude: Optional[float] = Field(None, ge=-90, le=90, allow_inf_nan=False)
    ol_longitude: Optional[float] = Field(None, ge=-180, le=180, allow_inf_nan=False)
    ol_radius_meters: Optional[int] = Field(None, gt=0)
    ol_address: Optional[str] = None
    ol_is_active: Optional[bool] = None


class OfficeLocationInDB(OfficeLocationBase):
    model_config = ConfigDict(from_attributes=True)

    ol_id: int
    ol_created_at: datetime
    ol_updated_at: Optional[datetime] = None

    @field_validator('ol_updated_at', 'ol_created_at', mode='before')
    @classmethod
    def fix_datetime_timezone(cls, v):
        return normalize_pg_timezone(v)


class OfficeLocation(OfficeLocationInDB):
    pass
