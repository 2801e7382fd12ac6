"""Business event payloads that drive achievement checks"""
from enum import Enum
from typing import ClassVar, Optional
from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    """Business event kinds the engine reacts to"""
    TAX_RETURN_FILED = "TAX_RETURN_FILED"
    USER_LOGIN = "USER_LOGIN"
    REFERRAL_CREATED = "REFERRAL_CREATED"
    REFERRAL_CONVERTED = "REFERRAL_CONVERTED"
    DOCUMENT_UPLOADED = "DOCUMENT_UPLOADED"
    MESSAGE_SENT = "MESSAGE_SENT"
    TRACKING_LINK_CREATED = "TRACKING_LINK_CREATED"
    CONTEST_ENDED = "CONTEST_ENDED"
    PROFILE_UPDATED = "PROFILE_UPDATED"
    COMMISSION_EARNED = "COMMISSION_EARNED"
    MARKETING_MATERIAL_SHARED = "MARKETING_MATERIAL_SHARED"
    RECALCULATE_ALL = "RECALCULATE_ALL"


class EventData(BaseModel):
    """Base class for event payloads"""
    model_config = ConfigDict(frozen=True, extra="forbid")

    event_type: ClassVar[EventType]


class TaxReturnFiledEvent(EventData):
    event_type: ClassVar[EventType] = EventType.TAX_RETURN_FILED

    client_id: str
    # Milliseconds between intake and filing
    filing_time: Optional[int] = Field(default=None, ge=0)
    days_before_deadline: Optional[int] = None


class UserLoginEvent(EventData):
    event_type: ClassVar[EventType] = EventType.USER_LOGIN

    login_hour: Optional[int] = Field(default=None, ge=0, le=23)


class ReferralCreatedEvent(EventData):
    event_type: ClassVar[EventType] = EventType.REFERRAL_CREATED

    referral_id: str


class ReferralConvertedEvent(EventData):
    event_type: ClassVar[EventType] = EventType.REFERRAL_CONVERTED

    referral_id: str


class DocumentUploadedEvent(EventData):
    event_type: ClassVar[EventType] = EventType.DOCUMENT_UPLOADED

    document_id: str


class MessageSentEvent(EventData):
    event_type: ClassVar[EventType] = EventType.MESSAGE_SENT

    message_id: str


class TrackingLinkCreatedEvent(EventData):
    event_type: ClassVar[EventType] = EventType.TRACKING_LINK_CREATED

    link_id: str


class ContestEndedEvent(EventData):
    event_type: ClassVar[EventType] = EventType.CONTEST_ENDED

    contest_id: str
    position: int = Field(ge=1)
    score: float


class ProfileUpdatedEvent(EventData):
    event_type: ClassVar[EventType] = EventType.PROFILE_UPDATED


class CommissionEarnedEvent(EventData):
    event_type: ClassVar[EventType] = EventType.COMMISSION_EARNED

    commission_id: str
    amount: float = Field(ge=0)


class MarketingMaterialSharedEvent(EventData):
    event_type: ClassVar[EventType] = EventType.MARKETING_MATERIAL_SHARED

    material_id: str
    channel: Optional[str] = None


class RecalculateAllEvent(EventData):
    event_type: ClassVar[EventType] = EventType.RECALCULATE_ALL
