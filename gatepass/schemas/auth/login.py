from pydantic import BaseModel, Field

class LoginRequest(BaseModel):
    payroll_no: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)
