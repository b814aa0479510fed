from pydantic import BaseModel, Field
from typing import Optional

class AlertCreate(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    location_name: Optional[str] = None
    victim_name: Optional[str] = None
    victim_age: Optional[int] = Field(None, ge=0, le=150)
    victim_blood_type: Optional[str] = None
    victim_sex: Optional[str] = None
