from pydantic import BaseModel
from typing import Optional, Union

class ProfileUpdate(BaseModel):
    # profiles
    full_name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    # user_profiles
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    address: Optional[str] = None
    birthday: Optional[str] = None
    age: Optional[Union[int, str]] = None
    blood_type: Optional[str] = None
    gender: Optional[str] = None

class ResponderSettingsUpdate(BaseModel):
    full_name: Optional[str] = None
    municipality: Optional[str] = None
    province: Optional[str] = None
    office_address: Optional[str] = None
    contact_number: Optional[str] = None
