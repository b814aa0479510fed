from pydantic import BaseModel, Field
from typing import Optional

class ReportCreate(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    location_name: Optional[str] = None
    image_url: Optional[str] = None
    description: Optional[str] = None
