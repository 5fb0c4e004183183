from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional


class VerifyOTPRequest(BaseModel):
    # Codes and numbers sometimes arrive as JSON numbers
    model_config = ConfigDict(coerce_numbers_to_str=True)

    email: Optional[str] = None
    mobile: Optional[str] = None
    otp: Optional[str] = None


class VerifyOTPResponse(BaseModel):
    success: bool
    message: str
    verified: bool
    user: dict


class SendOTPRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[EmailStr] = None
    mobile: Optional[str] = None
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    phone: Optional[str] = None
    plan: Optional[str] = None


class SendOTPResponse(BaseModel):
    success: bool
    message: str
    expires_in: int


class CheckUserRequest(BaseModel):
    email: Optional[str] = None
    mobile: Optional[str] = None


class CheckUserResponse(BaseModel):
    success: bool
    exists: bool
    message: str


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    email: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = Field(default=None, alias="countryCode")


class RegisterResponse(BaseModel):
    success: bool
    message: str
    user: dict


class MessageResponse(BaseModel):
    success: bool
    message: str
