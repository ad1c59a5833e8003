import uuid
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    full_name: str = Field(min_length=1)
    phone: Optional[str] = None
    # "delivery" is accepted for riders and normalised on the way in.
    user_type: Literal["customer", "restaurant", "rider", "delivery"] = "customer"


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    full_name: str
    phone: Optional[str]
    user_type: str
    is_active: bool

    class Config:
        from_attributes = True


class AddressCreate(BaseModel):
    street_address: str = Field(min_length=1)
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None


class AddressResponse(BaseModel):
    id: uuid.UUID
    street_address: str
    city: Optional[str]
    state: Optional[str]
    zip_code: Optional[str]

    class Config:
        from_attributes = True
