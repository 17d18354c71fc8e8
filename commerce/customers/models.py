from typing import Optional
from pydantic import BaseModel, field_validator

from commerce.utils.validators import validate_address, validate_name, validate_phone


class ProfileUpdateRequest(BaseModel):
    """Champs modifiables du profil; tout autre champ envoyé est ignoré."""
    name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("name")
    def name_length(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else validate_name(v)

    @field_validator("address")
    def address_required(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else validate_address(v)

    @field_validator("phone")
    def phone_format(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else validate_phone(v)
