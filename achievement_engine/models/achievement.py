"""Achievement models for gamification"""
from enum import Enum
from datetime import date, datetime
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from achievement_engine.models.user import UserRole


class AchievementCategory(str, Enum):
    """Achievement categories"""
    MILESTONE = "MILESTONE"
    PERFORMANCE = "PERFORMANCE"
    VOLUME = "VOLUME"
    QUALITY = "QUALITY"
    STREAK = "STREAK"
    ENGAGEMENT = "ENGAGEMENT"
    COMMUNITY = "COMMUNITY"
    SPECIAL = "SPECIAL"


class AchievementRarity(str, Enum):
    """How hard an achievement is to earn"""
    COMMON = "COMMON"
    RARE = "RARE"
    EPIC = "EPIC"
    LEGENDARY = "LEGENDARY"


class _CriteriaBase(BaseModel):
    """Criteria parameters accept both camelCase (catalog JSON) and snake_case"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )


# ==========================================
# Event-gated criteria
# ==========================================

class FilingSpeedCriteria(_CriteriaBase):
    type: Literal["filing_speed"] = "filing_speed"
    max_hours: float = Field(gt=0)


class EarlyFilingCriteria(_CriteriaBase):
    type: Literal["early_filing"] = "early_filing"
    days_before: int = Field(gt=0)


class ReturnsPerDayCriteria(_CriteriaBase):
    type: Literal["returns_per_day"] = "returns_per_day"
    count: int = Field(gt=0)


class ContestWinnerCriteria(_CriteriaBase):
    type: Literal["contest_winner"] = "contest_winner"
    position: int = Field(ge=1)


class EarlyLoginCriteria(_CriteriaBase):
    type: Literal["early_login"] = "early_login"
    hour: int = Field(ge=0, le=24)


class LateLoginCriteria(_CriteriaBase):
    type: Literal["late_login"] = "late_login"
    hour: int = Field(ge=0, le=23)


class SeasonalFilingCriteria(_CriteriaBase):
    type: Literal["seasonal_filing"] = "seasonal_filing"
    season: Literal["peak"] = "peak"
    threshold: int = Field(gt=0)


# ==========================================
# Standing-query criteria
# ==========================================

class ClientCountCriteria(_CriteriaBase):
    type: Literal["client_count"] = "client_count"
    threshold: int = Field(gt=0)


class ActiveClientsCriteria(_CriteriaBase):
    type: Literal["active_clients"] = "active_clients"
    threshold: int = Field(gt=0)


class DocumentsProcessedCriteria(_CriteriaBase):
    type: Literal["documents_processed"] = "documents_processed"
    threshold: int = Field(gt=0)


class SatisfactionRatingCriteria(_CriteriaBase):
    type: Literal["satisfaction_rating"] = "satisfaction_rating"
    threshold: float = Field(gt=0, le=5)


class EarningsCriteria(_CriteriaBase):
    type: Literal["earnings"] = "earnings"
    threshold: float = Field(gt=0)


class ReferralCountCriteria(_CriteriaBase):
    type: Literal["referral_count"] = "referral_count"
    threshold: int = Field(gt=0)


class LinksCreatedCriteria(_CriteriaBase):
    type: Literal["links_created"] = "links_created"
    threshold: int = Field(gt=0)


class LoginStreakCriteria(_CriteriaBase):
    type: Literal["login_streak"] = "login_streak"
    days: int = Field(gt=0)


class MessagesSentCriteria(_CriteriaBase):
    type: Literal["messages_sent"] = "messages_sent"
    threshold: int = Field(gt=0)


class ProfileCompleteCriteria(_CriteriaBase):
    type: Literal["profile_complete"] = "profile_complete"
    fields: tuple[str, ...] = Field(min_length=1)


class ConversionRateCriteria(_CriteriaBase):
    type: Literal["conversion_rate"] = "conversion_rate"
    threshold: float = Field(gt=0, le=1)
    min_referrals: int = Field(ge=1)


class SignupDateCriteria(_CriteriaBase):
    type: Literal["signup_date"] = "signup_date"
    before: date


# ==========================================
# Criteria with no wired signal yet
# ==========================================

class RatingWithReviewsCriteria(_CriteriaBase):
    type: Literal["rating_with_reviews"] = "rating_with_reviews"
    rating: float = Field(gt=0, le=5)
    reviews: int = Field(gt=0)


class ErrorFreeReturnsCriteria(_CriteriaBase):
    type: Literal["error_free_returns"] = "error_free_returns"
    threshold: int = Field(gt=0)


class FilingStreakCriteria(_CriteriaBase):
    type: Literal["filing_streak"] = "filing_streak"
    days: int = Field(gt=0)


class MaterialsSharedCriteria(_CriteriaBase):
    type: Literal["materials_shared"] = "materials_shared"
    threshold: int = Field(gt=0)


class MarketingChannelsCriteria(_CriteriaBase):
    type: Literal["marketing_channels"] = "marketing_channels"
    count: int = Field(gt=0)


Criteria = Annotated[
    Union[
        FilingSpeedCriteria,
        EarlyFilingCriteria,
        ReturnsPerDayCriteria,
        ContestWinnerCriteria,
        EarlyLoginCriteria,
        LateLoginCriteria,
        SeasonalFilingCriteria,
        ClientCountCriteria,
        ActiveClientsCriteria,
        DocumentsProcessedCriteria,
        SatisfactionRatingCriteria,
        EarningsCriteria,
        ReferralCountCriteria,
        LinksCreatedCriteria,
        LoginStreakCriteria,
        MessagesSentCriteria,
        ProfileCompleteCriteria,
        ConversionRateCriteria,
        SignupDateCriteria,
        RatingWithReviewsCriteria,
        ErrorFreeReturnsCriteria,
        FilingStreakCriteria,
        MaterialsSharedCriteria,
        MarketingChannelsCriteria,
    ],
    Field(discriminator="type"),
]


class AchievementDefinition(BaseModel):
    """Achievement definition, owned by the catalog"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    slug: str = Field(min_length=1)
    title: str
    description: str = ""
    points: int = Field(ge=0)
    target_roles: frozenset[UserRole] = Field(min_length=1)
    criteria: Criteria
    is_active: bool = True
    category: Optional[AchievementCategory] = None
    rarity: AchievementRarity = AchievementRarity.COMMON
    icon: Optional[str] = None
    badge_color: Optional[str] = None
    sort_order: int = 0

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v: str) -> str:
        """Slugs are stable lowercase keys"""
        if v != v.strip().lower() or " " in v:
            raise ValueError(f"Invalid slug '{v}': use lowercase letters, digits and underscores")
        return v

    def targets(self, role: str) -> bool:
        """Whether a user with this role can earn the achievement"""
        return any(r.value == role for r in self.target_roles)


class UserAchievementProgress(BaseModel):
    """A user's progress toward one achievement"""
    user_id: str
    achievement_id: str
    progress: float = Field(default=0.0, ge=0, le=100)
    is_unlocked: bool = False
    unlocked_at: Optional[datetime] = None
    viewed: bool = False


class CriteriaResult(BaseModel):
    """Outcome of evaluating one criteria"""
    achieved: bool
    progress: float = Field(ge=0, le=100)


class AchievementCheckResult(BaseModel):
    """Per-achievement result of an unlock check"""
    achieved: bool
    progress: float
    achievement: Optional[AchievementDefinition] = None
    xp_awarded: Optional[int] = None


class UnlockedAchievement(BaseModel):
    """An unlocked achievement joined with its definition"""
    achievement: AchievementDefinition
    unlocked_at: datetime
    viewed: bool = False


class AchievementSummary(BaseModel):
    """Counts and recent unlocks for a user's achievement shelf"""
    unlocked: int
    total: int
    new: int
    recent: list[UnlockedAchievement] = Field(default_factory=list)
