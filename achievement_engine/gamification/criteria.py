"""
Achievement Criteria Evaluation

Computes {achieved, progress} for one criteria and one user.

Two kinds of criteria:
- Event-gated: only meaningful for a specific event (a filing, a login, a
  contest result). Any other event makes them not applicable (None).
- Standing: read an aggregate from the data store and compare it to a
  threshold. Evaluable on every event.

Handlers are looked up by the criteria's model class. Each receives its own
typed criteria model.
"""

import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from achievement_engine.db.store import CONVERTED_REFERRAL_STATUS, DataStore
from achievement_engine.exceptions import EvaluationError, GamificationError
from achievement_engine.models.achievement import (
    ActiveClientsCriteria,
    ClientCountCriteria,
    ContestWinnerCriteria,
    ConversionRateCriteria,
    Criteria,
    CriteriaResult,
    DocumentsProcessedCriteria,
    EarlyFilingCriteria,
    EarlyLoginCriteria,
    EarningsCriteria,
    ErrorFreeReturnsCriteria,
    FilingSpeedCriteria,
    FilingStreakCriteria,
    LateLoginCriteria,
    LinksCreatedCriteria,
    LoginStreakCriteria,
    MarketingChannelsCriteria,
    MaterialsSharedCriteria,
    MessagesSentCriteria,
    ProfileCompleteCriteria,
    RatingWithReviewsCriteria,
    ReferralCountCriteria,
    ReturnsPerDayCriteria,
    SatisfactionRatingCriteria,
    SeasonalFilingCriteria,
    SignupDateCriteria,
)
from achievement_engine.models.events import (
    ContestEndedEvent,
    EventData,
    EventType,
    TaxReturnFiledEvent,
    UserLoginEvent,
)
from achievement_engine.models.stats import UserStats
from achievement_engine.utils.datetime_helpers import (
    Clock,
    get_engine_timezone,
    local_date,
    now_utc,
    peak_season_window,
    start_of_local_day,
)

logger = logging.getLogger(__name__)

MS_PER_HOUR = 3_600_000

_criteria_adapter = TypeAdapter(Criteria)

Handler = Callable[..., Awaitable[Optional[CriteriaResult]]]


def threshold_result(current: float, threshold: float) -> CriteriaResult:
    """achieved when current >= threshold; progress is the capped percentage"""
    return CriteriaResult(
        achieved=current >= threshold,
        progress=min(100.0, current / threshold * 100),
    )


def binary_result(achieved: bool) -> CriteriaResult:
    """All-or-nothing criteria: progress is 100 or 0"""
    return CriteriaResult(achieved=achieved, progress=100.0 if achieved else 0.0)


NOT_ACHIEVED = CriteriaResult(achieved=False, progress=0.0)


def _is_filled(value: Any) -> bool:
    return value is not None and value != ""


class CriteriaEvaluator:
    """Evaluates achievement criteria against the data store"""

    def __init__(self, store: DataStore, clock: Clock = now_utc, tz=None):
        self.store = store
        self.clock = clock
        self.tz = tz or get_engine_timezone()

        self._handlers: dict[type, Handler] = {
            # Event-gated
            FilingSpeedCriteria: self._filing_speed,
            EarlyFilingCriteria: self._early_filing,
            ReturnsPerDayCriteria: self._returns_per_day,
            ContestWinnerCriteria: self._contest_winner,
            EarlyLoginCriteria: self._early_login,
            LateLoginCriteria: self._late_login,
            SeasonalFilingCriteria: self._seasonal_filing,
            # Standing
            ClientCountCriteria: self._client_count,
            ActiveClientsCriteria: self._active_clients,
            DocumentsProcessedCriteria: self._documents_processed,
            SatisfactionRatingCriteria: self._satisfaction_rating,
            EarningsCriteria: self._earnings,
            ReferralCountCriteria: self._referral_count,
            LinksCreatedCriteria: self._links_created,
            LoginStreakCriteria: self._login_streak,
            MessagesSentCriteria: self._messages_sent,
            ProfileCompleteCriteria: self._profile_complete,
            ConversionRateCriteria: self._conversion_rate,
            SignupDateCriteria: self._signup_date,
            # No signal wired yet
            RatingWithReviewsCriteria: self._not_tracked,
            ErrorFreeReturnsCriteria: self._not_tracked,
            FilingStreakCriteria: self._not_tracked,
            MaterialsSharedCriteria: self._not_tracked,
            MarketingChannelsCriteria: self._not_tracked,
        }

    async def evaluate(
        self,
        user_id: str,
        criteria: Union[Criteria, Mapping[str, Any]],
        event_type: EventType,
        event_data: Optional[EventData] = None,
    ) -> Optional[CriteriaResult]:
        """
        Evaluate one criteria for a user

        Args:
            user_id: User being evaluated
            criteria: Typed criteria model, or a raw mapping with a "type" key
            event_type: Event that triggered the check
            event_data: Event payload (None when the event carries none)

        Returns:
            CriteriaResult, or None when the criteria does not apply to this event

        Raises:
            EvaluationError: if reading the data store failed
        """
        if isinstance(criteria, Mapping):
            criteria = self._parse_raw(criteria)
            if criteria is None:
                return None

        handler = self._handlers.get(type(criteria))
        if handler is None:
            logger.warning(f"No evaluator for criteria {type(criteria).__name__}")
            return None

        try:
            return await handler(user_id, criteria, event_type, event_data)
        except GamificationError as e:
            if isinstance(e, EvaluationError):
                raise
            raise EvaluationError(
                message=f"Failed to evaluate {criteria.type} criteria: {e.message}",
                criteria_type=criteria.type,
                user_id=user_id,
                operation="evaluate_criteria",
                cause=e,
            )
        except Exception as e:
            raise EvaluationError(
                message=f"Failed to evaluate {criteria.type} criteria: {e}",
                criteria_type=criteria.type,
                user_id=user_id,
                operation="evaluate_criteria",
                cause=e,
            )

    def _parse_raw(self, raw: Mapping[str, Any]) -> Optional[Criteria]:
        """Validate a raw criteria mapping; unknown or malformed criteria are not applicable"""
        try:
            return _criteria_adapter.validate_python(dict(raw))
        except PydanticValidationError as e:
            logger.warning(f"Unknown achievement criteria type: {raw.get('type')} ({e.error_count()} errors)")
            return None

    async def _stats(self, user_id: str) -> UserStats:
        return await self.store.get_user_stats(user_id) or UserStats(user_id=user_id)

    # ==========================================
    # Event-gated criteria
    # ==========================================

    async def _filing_speed(self, user_id, criteria: FilingSpeedCriteria, event_type, event_data):
        if event_type != EventType.TAX_RETURN_FILED or not isinstance(event_data, TaxReturnFiledEvent):
            return None
        if event_data.filing_time is None:
            return None
        hours = event_data.filing_time / MS_PER_HOUR
        return binary_result(hours <= criteria.max_hours)

    async def _early_filing(self, user_id, criteria: EarlyFilingCriteria, event_type, event_data):
        if event_type != EventType.TAX_RETURN_FILED or not isinstance(event_data, TaxReturnFiledEvent):
            return None
        if event_data.days_before_deadline is None:
            return None
        return binary_result(event_data.days_before_deadline >= criteria.days_before)

    async def _returns_per_day(self, user_id, criteria: ReturnsPerDayCriteria, event_type, event_data):
        if event_type != EventType.TAX_RETURN_FILED:
            return None
        since = start_of_local_day(self.clock(), self.tz)
        count = await self.store.count_filed_returns(user_id, since=since)
        return threshold_result(count, criteria.count)

    async def _contest_winner(self, user_id, criteria: ContestWinnerCriteria, event_type, event_data):
        if event_type != EventType.CONTEST_ENDED or not isinstance(event_data, ContestEndedEvent):
            return None
        return binary_result(event_data.position <= criteria.position)

    async def _early_login(self, user_id, criteria: EarlyLoginCriteria, event_type, event_data):
        if event_type != EventType.USER_LOGIN or not isinstance(event_data, UserLoginEvent):
            return None
        if event_data.login_hour is None:
            return None
        return binary_result(event_data.login_hour < criteria.hour)

    async def _late_login(self, user_id, criteria: LateLoginCriteria, event_type, event_data):
        if event_type != EventType.USER_LOGIN or not isinstance(event_data, UserLoginEvent):
            return None
        if event_data.login_hour is None:
            return None
        return binary_result(event_data.login_hour >= criteria.hour)

    async def _seasonal_filing(self, user_id, criteria: SeasonalFilingCriteria, event_type, event_data):
        if event_type != EventType.TAX_RETURN_FILED:
            return None
        since, until = peak_season_window(self.clock(), self.tz)
        count = await self.store.count_filed_returns(user_id, since=since, until=until)
        return threshold_result(count, criteria.threshold)

    # ==========================================
    # Standing criteria
    # ==========================================

    async def _client_count(self, user_id, criteria: ClientCountCriteria, event_type, event_data):
        count = await self.store.count_filed_returns(user_id)
        return threshold_result(count, criteria.threshold)

    async def _active_clients(self, user_id, criteria: ActiveClientsCriteria, event_type, event_data):
        count = await self.store.count_active_clients(user_id)
        return threshold_result(count, criteria.threshold)

    async def _documents_processed(self, user_id, criteria: DocumentsProcessedCriteria, event_type, event_data):
        stats = await self._stats(user_id)
        return threshold_result(stats.documents_processed, criteria.threshold)

    async def _satisfaction_rating(self, user_id, criteria: SatisfactionRatingCriteria, event_type, event_data):
        stats = await self._stats(user_id)
        return binary_result(stats.client_satisfaction >= criteria.threshold)

    async def _earnings(self, user_id, criteria: EarningsCriteria, event_type, event_data):
        total = await self.store.sum_commissions(user_id)
        return threshold_result(total, criteria.threshold)

    async def _referral_count(self, user_id, criteria: ReferralCountCriteria, event_type, event_data):
        count = await self.store.count_referrals(user_id)
        return threshold_result(count, criteria.threshold)

    async def _links_created(self, user_id, criteria: LinksCreatedCriteria, event_type, event_data):
        stats = await self._stats(user_id)
        return threshold_result(stats.links_created, criteria.threshold)

    async def _login_streak(self, user_id, criteria: LoginStreakCriteria, event_type, event_data):
        stats = await self._stats(user_id)
        return threshold_result(stats.login_streak, criteria.days)

    async def _messages_sent(self, user_id, criteria: MessagesSentCriteria, event_type, event_data):
        stats = await self._stats(user_id)
        return threshold_result(stats.messages_sent, criteria.threshold)

    async def _profile_complete(self, user_id, criteria: ProfileCompleteCriteria, event_type, event_data):
        profile = await self.store.get_user_profile(user_id)
        if profile is None:
            return NOT_ACHIEVED

        filled = sum(1 for field in criteria.fields if _is_filled(profile.fields.get(field)))
        return CriteriaResult(
            achieved=filled == len(criteria.fields),
            progress=filled / len(criteria.fields) * 100,
        )

    async def _conversion_rate(self, user_id, criteria: ConversionRateCriteria, event_type, event_data):
        total = await self.store.count_referrals(user_id)
        if total < criteria.min_referrals:
            return NOT_ACHIEVED

        converted = await self.store.count_referrals(user_id, status=CONVERTED_REFERRAL_STATUS)
        rate = converted / total
        if rate >= criteria.threshold:
            return CriteriaResult(achieved=True, progress=100.0)
        return CriteriaResult(achieved=False, progress=min(100.0, rate / criteria.threshold * 100))

    async def _signup_date(self, user_id, criteria: SignupDateCriteria, event_type, event_data):
        profile = await self.store.get_user_profile(user_id)
        if profile is None:
            return NOT_ACHIEVED
        return binary_result(local_date(profile.created_at, self.tz) < criteria.before)

    async def _not_tracked(self, user_id, criteria, event_type, event_data):
        # TODO: wire review counts, return corrections, filing days, shares and channels once those events exist
        return NOT_ACHIEVED
