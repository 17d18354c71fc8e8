from pydantic import BaseModel, EmailStr, Field, field_validator

from commerce.utils.validators import validate_address, validate_name, validate_phone


class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    address: str
    phone: str
    password: str = Field(min_length=6)

    @field_validator("name")
    def name_length(cls, v: str) -> str:
        return validate_name(v)

    @field_validator("address")
    def address_required(cls, v: str) -> str:
        return validate_address(v)

    @field_validator("phone")
    def phone_format(cls, v: str) -> str:
        return validate_phone(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)
