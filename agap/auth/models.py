from pydantic import BaseModel
from typing import Literal, Optional

class UserRegister(BaseModel):
    email: str
    password: str

class ResponderRegister(BaseModel):
    email: str
    password: str
    confirm_password: str
    full_name: Optional[str] = None
    municipality: str
    province: str
    office_address: str
    contact_number: Optional[str] = None

class UserLogin(BaseModel):
    email: str
    password: str
    client: Literal["mobile", "web"] = "web"

class ForgotPasswordRequest(BaseModel):
    email: str

class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str

class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str
