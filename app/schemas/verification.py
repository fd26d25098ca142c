"""
app/schemas/verification.py

Pydantic models for the homepage SMS gate and standalone SMS verification.
"""

from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, Literal, List

from utils.validation_utils import normalize_code


class PropertyData(BaseModel):
    """Property details captured by the estimation form."""

    property_type: Optional[Literal["apartment", "house"]] = Field(default=None, description="Property type")
    address: Optional[str] = Field(default=None, max_length=300)
    city: Optional[str] = Field(default=None, max_length=100)
    postal_code: Optional[str] = Field(default=None, max_length=10)
    surface: Optional[float] = Field(default=None, gt=0, le=10000, description="Living area in m²")
    rooms: Optional[int] = Field(default=None, ge=1, le=50)
    bedrooms: Optional[int] = Field(default=None, ge=0, le=50)
    bathrooms: Optional[int] = Field(default=None, ge=0, le=20)
    has_garden: bool = False
    has_parking: bool = False
    has_balcony: bool = False
    construction_year: Optional[int] = Field(default=None, ge=1700, le=2100)


class StartVerificationRequest(BaseModel):
    phone_number: str = Field(..., min_length=6, max_length=30, description="Phone number as typed by the user")
    property_data: PropertyData = Field(default_factory=PropertyData)
    email: Optional[EmailStr] = Field(default=None, description="Contact email")
    first_name: Optional[str] = Field(default=None, max_length=100)


class StartVerificationResponse(BaseModel):
    success: bool
    session_id: str
    message: str


class SendSmsRequest(BaseModel):
    session_id: str = Field(..., min_length=1, description="Session ID returned by /start")


class SendSmsResponse(BaseModel):
    success: bool
    message: str
    phone_display: str = Field(..., description="Masked phone number")


class VerifySmsRequest(BaseModel):
    session_id: str = Field(..., min_length=1)
    code: str = Field(..., description="6-digit code received by SMS")

    @field_validator("code")
    @classmethod
    def strip_code(cls, v: str) -> str:
        return normalize_code(v)


class VerifySmsResponse(BaseModel):
    success: bool
    message: str
    lead_id: str


class VerificationSessionStatus(BaseModel):
    session_id: str
    state: str
    is_sms_verified: bool
    phone_display: str
    expires_at: datetime
    lead_id: Optional[str] = None


class SendCodeRequest(BaseModel):
    phone_number: str = Field(..., min_length=6, max_length=30)


class SendCodeResponse(BaseModel):
    success: bool
    message: str
    message_id: str
    expires_in: int = Field(..., description="Code validity in seconds")


class VerifyCodeRequest(BaseModel):
    phone_number: str = Field(..., min_length=6, max_length=30)
    code: str = Field(..., min_length=1, max_length=20)


class VerifyCodeResponse(BaseModel):
    success: bool
    message: str
    session_id: str
    phone_number: str


class VerificationStatusResponse(BaseModel):
    exists: bool
    is_verified: bool
    expires_at: Optional[datetime] = None
    attempts_used: int = 0


class SmsConnectionResponse(BaseModel):
    success: bool
    mode: Literal["development", "production"]
    message: Optional[str] = None
    account_status: Optional[str] = None
    error: Optional[str] = None


class ActiveCode(BaseModel):
    phone_number: str
    code: str
    expires_at: datetime
    attempts: int
    verified: bool


class SmsDebugResponse(BaseModel):
    mode: str
    test_codes: List[str]
    active_codes: List[ActiveCode]
