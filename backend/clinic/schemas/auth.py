from pydantic import BaseModel, field_validator
from datetime import datetime
from typing import Literal, Optional

Role = Literal["doctor", "user"]


class SendOtpRequest(BaseModel):
    email: str = ""
    role_hint: Optional[Role] = None


class VerifyOtpRequest(BaseModel):
    email: str = ""
    code: str = ""
    role_hint: Optional[Role] = None

    @field_validator("code", mode="before")
    @classmethod
    def _code_as_text(cls, value):
        # Codes are 100000-999999, so a numeric code loses no leading zeros
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class AccountResponse(BaseModel):
    id: str
    email: str
    role: str
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: AccountResponse
