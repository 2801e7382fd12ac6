"""
Achievement Triggers

One entry point per business event. The platform calls these after the
business action has completed; they never raise, because a missed
achievement must not fail a filing, a login or a payout.

Two ways to call a trigger:
- await triggers.on_user_login(user_id, login_hour=7)
  runs the check and returns the results ([] on failure)
- triggers.fire(triggers.on_user_login, user_id, login_hour=7)
  schedules the same call as a background task and returns immediately
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Set

from achievement_engine.gamification.achievement_system import AchievementSystem
from achievement_engine.gamification.streak_system import StreakTracker
from achievement_engine.models.achievement import AchievementCheckResult
from achievement_engine.models.events import (
    CommissionEarnedEvent,
    ContestEndedEvent,
    DocumentUploadedEvent,
    EventData,
    EventType,
    MarketingMaterialSharedEvent,
    MessageSentEvent,
    ProfileUpdatedEvent,
    RecalculateAllEvent,
    ReferralConvertedEvent,
    ReferralCreatedEvent,
    TaxReturnFiledEvent,
    TrackingLinkCreatedEvent,
    UserLoginEvent,
)
from achievement_engine.monitoring import capture_exception, record_trigger_failure, set_user_context
from achievement_engine.utils.datetime_helpers import to_local

logger = logging.getLogger(__name__)

TriggerResult = List[AchievementCheckResult]


class AchievementTriggers:
    """Event trigger facade over the unlock orchestrator"""

    def __init__(self, system: AchievementSystem, streaks: Optional[StreakTracker] = None):
        self.system = system
        self.streaks = streaks or StreakTracker(system.store, clock=system.clock)
        self._pending: Set[asyncio.Task] = set()

    async def _run(
        self,
        user_id: str,
        event_type: EventType,
        build_event: Callable[[], EventData],
        before: Optional[Callable[[], Awaitable[Any]]] = None,
    ) -> TriggerResult:
        """Build the payload, run the check, swallow and report any failure"""
        try:
            set_user_context(user_id)
            if before is not None:
                await before()
            event_data = build_event()
            return await self.system.check_and_unlock_achievements(user_id, event_type, event_data)
        except Exception as e:
            record_trigger_failure(event_type.value)
            capture_exception(e, user_id=user_id, event_type=event_type.value)
            logger.error(
                f"Achievement trigger {event_type.value} failed for user {user_id}: {e}",
                exc_info=True
            )
            return []

    def _local_hour(self) -> int:
        return to_local(self.system.clock(), self.streaks.tz).hour

    # ==========================================
    # Tax preparer events
    # ==========================================

    async def on_tax_return_filed(
        self,
        user_id: str,
        client_id: str,
        filing_time: Optional[int] = None,
        days_before_deadline: Optional[int] = None,
    ) -> TriggerResult:
        """
        A preparer filed a client's return

        Args:
            user_id: Preparer ID
            client_id: Client whose return was filed
            filing_time: Milliseconds from intake to filing
            days_before_deadline: Days left before the filing deadline
        """
        return await self._run(
            user_id,
            EventType.TAX_RETURN_FILED,
            lambda: TaxReturnFiledEvent(
                client_id=client_id,
                filing_time=filing_time,
                days_before_deadline=days_before_deadline,
            ),
        )

    async def on_document_uploaded(self, user_id: str, document_id: str) -> TriggerResult:
        return await self._run(
            user_id,
            EventType.DOCUMENT_UPLOADED,
            lambda: DocumentUploadedEvent(document_id=document_id),
        )

    async def on_commission_earned(self, user_id: str, commission_id: str, amount: float) -> TriggerResult:
        return await self._run(
            user_id,
            EventType.COMMISSION_EARNED,
            lambda: CommissionEarnedEvent(commission_id=commission_id, amount=amount),
        )

    # ==========================================
    # Universal events
    # ==========================================

    async def on_user_login(self, user_id: str, login_hour: Optional[int] = None) -> TriggerResult:
        """
        A user logged in

        Updates the login streak first so streak criteria see today's login.
        If the streak update fails the achievements are still checked against
        the stored streak.

        Args:
            user_id: User ID
            login_hour: Local hour of the login (0-23); defaults to the
                current hour in the engine timezone
        """
        return await self._run(
            user_id,
            EventType.USER_LOGIN,
            lambda: UserLoginEvent(
                login_hour=login_hour if login_hour is not None else self._local_hour()
            ),
            before=lambda: self._update_streak(user_id),
        )

    async def _update_streak(self, user_id: str) -> None:
        """Update the login streak; a failure is reported and the check still runs"""
        try:
            await self.streaks.update_streak(user_id)
        except Exception as e:
            record_trigger_failure(EventType.USER_LOGIN.value)
            capture_exception(e, user_id=user_id, event_type=EventType.USER_LOGIN.value)
            logger.error(f"Login streak update failed for user {user_id}: {e}", exc_info=True)

    async def on_message_sent(self, user_id: str, message_id: str) -> TriggerResult:
        return await self._run(
            user_id,
            EventType.MESSAGE_SENT,
            lambda: MessageSentEvent(message_id=message_id),
        )

    async def on_profile_updated(self, user_id: str) -> TriggerResult:
        return await self._run(user_id, EventType.PROFILE_UPDATED, ProfileUpdatedEvent)

    async def on_contest_ended(
        self, user_id: str, contest_id: str, position: int, score: float
    ) -> TriggerResult:
        """
        A contest the user took part in has ended

        Args:
            user_id: Participant ID
            contest_id: Contest ID
            position: Final rank (1 = winner)
            score: Final score
        """
        return await self._run(
            user_id,
            EventType.CONTEST_ENDED,
            lambda: ContestEndedEvent(contest_id=contest_id, position=position, score=score),
        )

    # ==========================================
    # Affiliate & referrer events
    # ==========================================

    async def on_referral_created(self, user_id: str, referral_id: str) -> TriggerResult:
        return await self._run(
            user_id,
            EventType.REFERRAL_CREATED,
            lambda: ReferralCreatedEvent(referral_id=referral_id),
        )

    async def on_referral_converted(self, user_id: str, referral_id: str) -> TriggerResult:
        return await self._run(
            user_id,
            EventType.REFERRAL_CONVERTED,
            lambda: ReferralConvertedEvent(referral_id=referral_id),
        )

    async def on_tracking_link_created(self, user_id: str, link_id: str) -> TriggerResult:
        return await self._run(
            user_id,
            EventType.TRACKING_LINK_CREATED,
            lambda: TrackingLinkCreatedEvent(link_id=link_id),
        )

    async def on_marketing_material_shared(
        self, user_id: str, material_id: str, channel: Optional[str] = None
    ) -> TriggerResult:
        return await self._run(
            user_id,
            EventType.MARKETING_MATERIAL_SHARED,
            lambda: MarketingMaterialSharedEvent(material_id=material_id, channel=channel),
        )

    # ==========================================
    # Manual
    # ==========================================

    async def recalculate_all(self, user_id: str) -> TriggerResult:
        """Re-check every standing achievement for a user"""
        return await self._run(user_id, EventType.RECALCULATE_ALL, RecalculateAllEvent)

    # ==========================================
    # Background dispatch
    # ==========================================

    def fire(self, trigger: Callable[..., Awaitable[TriggerResult]], *args: Any, **kwargs: Any) -> asyncio.Task:
        """
        Schedule a trigger as a background task and return immediately

        The task is referenced until it completes so it cannot be garbage
        collected mid-run.

        Example:
            triggers.fire(triggers.on_tax_return_filed, preparer_id, client_id="c-1")
        """
        task = asyncio.create_task(trigger(*args, **kwargs))
        self._pending.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            logger.warning("Background achievement trigger was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background achievement trigger failed: {error}", exc_info=error)

    @property
    def pending(self) -> int:
        """Number of background triggers still running"""
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every background trigger to finish"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
