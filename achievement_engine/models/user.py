"""User-related Pydantic models"""
from enum import Enum
from datetime import datetime
from typing import Any
from pydantic import BaseModel, Field, field_validator


class UserRole(str, Enum):
    """Role tags achievements can target"""
    TAX_PREPARER = "TAX_PREPARER"
    AFFILIATE = "AFFILIATE"
    REFERRER = "REFERRER"
    CLIENT = "CLIENT"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class UserProfile(BaseModel):
    """Read-only view of a user's profile as seen by the engine"""
    user_id: str
    # Free-form role tag from the identity system; roles no achievement
    # targets (LEAD, ...) are valid and simply match nothing
    role: str
    created_at: datetime
    # Named profile attributes (licenseNo, companyName, phone, ...) consulted
    # by profile_complete criteria
    fields: dict[str, Any] = Field(default_factory=dict)

    @field_validator("role", mode="before")
    @classmethod
    def role_value(cls, v: Any) -> Any:
        return v.value if isinstance(v, UserRole) else v
