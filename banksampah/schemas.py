"""
Request schemas for the Bank Sampah API.

Each Pydantic model validates the JSON body of one endpoint. Shape and
length rules live here; business rules (pricing keys, weight range, e-wallet
registration, status transitions) are checked by the core modules.
"""
import re
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, StrictInt, field_validator, model_validator

EwalletType = Literal['dana', 'ovo', 'gopay']

PHONE_PATTERN = r'^(\+62|62|0)8[1-9][0-9]{6,11}$'


def _normalize_phone(value):
    if value is None:
        return value
    return value.replace(' ', '').replace('-', '')


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=2, description="Full name")
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: str = Field(..., description="Indonesian mobile number")
    address: str = Field(..., min_length=10)

    @field_validator('name', 'address')
    @classmethod
    def strip_text(cls, v):
        return v.strip()

    @field_validator('phone')
    @classmethod
    def check_phone(cls, v):
        v = _normalize_phone(v)
        if not re.match(PHONE_PATTERN, v):
            raise ValueError('Nomor telepon tidak valid')
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2)
    phone: Optional[str] = None
    address: Optional[str] = Field(None, min_length=10)
    ewallet_accounts: Optional[Dict[EwalletType, str]] = None

    @field_validator('phone')
    @classmethod
    def check_phone(cls, v):
        v = _normalize_phone(v)
        if v is not None and not re.match(PHONE_PATTERN, v):
            raise ValueError('Nomor telepon tidak valid')
        return v


class EwalletUpdate(BaseModel):
    dana: Optional[str] = None
    ovo: Optional[str] = None
    gopay: Optional[str] = None

    @field_validator('dana', 'ovo', 'gopay')
    @classmethod
    def check_number(cls, v):
        v = _normalize_phone(v)
        if v is not None and not re.match(PHONE_PATTERN, v):
            raise ValueError('Nomor e-wallet tidak valid')
        return v


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)
    confirm_password: str

    @model_validator(mode='after')
    def passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError('Konfirmasi password tidak cocok')
        return self


class AccountDelete(BaseModel):
    password: str = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=500)


class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class SubmissionCreate(BaseModel):
    waste_type: str
    estimated_weight: float
    ewallet_type: EwalletType
    pickup_address: str = Field(..., min_length=10)
    pickup_schedule: datetime
    notes: Optional[str] = Field('', max_length=500)
    pickup_coordinates: Optional[Coordinates] = None
    bank_sampah_id: Optional[int] = None
    images: List[Dict[str, object]] = Field(default_factory=list)

    @field_validator('pickup_address')
    @classmethod
    def strip_address(cls, v):
        return v.strip()


class StatusUpdate(BaseModel):
    status: str
    note: Optional[str] = Field('', max_length=200)
    actual_weight: Optional[float] = None
    driver_id: Optional[str] = None


class AdminSubmissionUpdate(BaseModel):
    status: Optional[str] = None
    actual_weight: Optional[float] = None
    admin_notes: Optional[str] = Field(None, max_length=500)
    pickup_driver: Optional[str] = None


class UserStatusUpdate(BaseModel):
    is_active: bool
    reason: Optional[str] = Field(None, max_length=200)


class ReviewCreate(BaseModel):
    rating: StrictInt
    comment: Optional[str] = ''
