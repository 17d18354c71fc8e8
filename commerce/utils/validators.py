import re

PHONE_RE = re.compile(r"^[\d\s\-+()]+$")

def validate_phone(v: str) -> str:
    v = (v or "").strip()
    if not v or not PHONE_RE.match(v):
        raise ValueError("Please provide a valid phone number")
    return v

def validate_name(v: str) -> str:
    v = (v or "").strip()
    if not 2 <= len(v) <= 100:
        raise ValueError("Name must be between 2 and 100 characters")
    return v

def validate_address(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("Address is required")
    return v
