from pydantic import BaseModel
from typing import Literal

ResponseStatus = Literal["pending", "accepted", "rejected", "in_progress", "completed"]

class AssignmentCreate(BaseModel):
    incident_type: Literal["alert", "report"]
    incident_id: str
    response_status: ResponseStatus = "pending"

class AssignmentUpdate(BaseModel):
    response_status: ResponseStatus
