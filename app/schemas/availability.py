from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AvailabilitySlotCreate(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)
    start_time: str = Field(..., pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    end_time: str = Field(..., pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    is_active: bool = True


class AvailabilitySlotUpdate(BaseModel):
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    start_time: Optional[str] = Field(None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    end_time: Optional[str] = Field(None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    is_active: Optional[bool] = None


class AvailabilitySlotResponse(BaseModel):
    id: int
    mentor_id: int
    day_of_week: int
    start_time: str
    end_time: str
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class TimeWindow(BaseModel):
    start: datetime
    end: datetime


class DayAvailability(BaseModel):
    mentor_id: int
    date: date
    booked: List[TimeWindow]
    open: List[TimeWindow]
