"""Generation quota and audit ledger.

Users are either Unlimited (admins and active subscribers) or Metered. A
Metered user needs credits left AND fewer than the daily cap of started or
completed attempts today. Every attempt, including a rejected one, leaves an
`ai_generation_logs` row. The credit is reserved with a single conditional
UPDATE in the same commit that opens the attempt, so two concurrent requests
can never both spend the same credit, and it is refunded when the attempt
fails, so failed attempts cost nothing.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import get_settings
from core.exceptions import InvalidProfileError, RateLimitExceededError
from core.logger import get_logger
from core.repository import BaseRepository
from database import models

logger = get_logger("services.quota_ledger")

MEAL_PLAN_GENERATION = "meal_plan"

STATUS_STARTED = "started"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


@dataclass(frozen=True)
class QuotaAccount:
    """Quota state of a user at pre-check time."""

    user_id: str
    unlimited: bool
    remaining: int


def _dump(data: Optional[Dict[str, Any]]) -> Optional[str]:
    if data is None:
        return None
    return json.dumps(data, default=str, ensure_ascii=False)


class QuotaLedger:
    """Pre-checks, audit entries and credit deduction for one request."""

    def __init__(self, session: Session, settings=None, clock: Callable[[], datetime] = datetime.utcnow):
        self.session = session
        self.settings = settings or get_settings()
        self.clock = clock
        self.profiles = BaseRepository(models.Profile, session)
        self.subscriptions = BaseRepository(models.Subscription, session)
        self.logs = BaseRepository(models.AIGenerationLog, session)

    def _today_window(self):
        start = datetime.combine(self.clock().date(), datetime.min.time())
        return start, start + timedelta(days=1)

    def is_unlimited(self, profile: models.Profile) -> bool:
        if (profile.role or "").lower() == "admin":
            return True
        active = self.subscriptions.count_where(
            models.Subscription.user_id == profile.id,
            models.Subscription.status == "active",
            models.Subscription.current_period_end > self.clock(),
        )
        return active > 0

    def account(self, user_id: str) -> QuotaAccount:
        """Load the quota state of a user.

        Raises:
            InvalidProfileError: If the user has no profile row.
        """
        profile = self.profiles.get_by_id(user_id)
        if profile is None:
            raise InvalidProfileError(f"No profile found for user {user_id}", field="id")
        return QuotaAccount(
            user_id=profile.id,
            unlimited=self.is_unlimited(profile),
            remaining=profile.ai_generations_remaining or 0,
        )

    def generations_today(self, user_id: str, generation_type: str = MEAL_PLAN_GENERATION) -> int:
        """Count today's started and completed attempts of one type."""
        start, end = self._today_window()
        return self.logs.count_where(
            models.AIGenerationLog.user_id == user_id,
            models.AIGenerationLog.generation_type == generation_type,
            models.AIGenerationLog.status.in_([STATUS_STARTED, STATUS_COMPLETED]),
            models.AIGenerationLog.created_at >= start,
            models.AIGenerationLog.created_at < end,
        )

    def _reject(self, account: QuotaAccount, generation_type: str, prompt_data, message: str, reason: str, reset_at=None):
        self.logs.add(models.AIGenerationLog(
            user_id=account.user_id,
            generation_type=generation_type,
            prompt_data=_dump(prompt_data),
            status=STATUS_FAILED,
            credits_used=0,
            error_message=message,
            created_at=self.clock(),
        ))
        self.session.commit()
        logger.info("Quota rejection for user %s: %s", account.user_id, reason)
        raise RateLimitExceededError(message, reason=reason, remaining=account.remaining, reset_at=reset_at)

    def check(self, user_id: str, generation_type: str = MEAL_PLAN_GENERATION,
              prompt_data: Optional[Dict[str, Any]] = None) -> QuotaAccount:
        """Pre-check a user before any model call is made.

        The credit and the daily cap are independent limits; both must pass.

        Raises:
            InvalidProfileError: If the user has no profile row.
            RateLimitExceededError: If a Metered user is out of credits or
                over the daily cap. The rejection is logged first.
        """
        account = self.account(user_id)
        if account.unlimited:
            logger.info("User %s has unlimited generations", user_id)
            return account

        if account.remaining <= 0:
            self._reject(account, generation_type, prompt_data, "No AI credits remaining", "no_credits")

        today = self.generations_today(user_id, generation_type)
        cap = self.settings.DAILY_GENERATION_CAP
        if today >= cap:
            _, reset_at = self._today_window()
            self._reject(
                account, generation_type, prompt_data,
                f"Daily {generation_type} generation limit of {cap} reached",
                "daily_cap", reset_at=reset_at.isoformat(),
            )

        logger.info("Quota check passed for user %s: remaining=%s today=%s/%s", user_id, account.remaining, today, cap)
        return account

    def _reserve(self, user_id: str) -> bool:
        result = self.session.execute(
            update(models.Profile)
            .where(models.Profile.id == user_id, models.Profile.ai_generations_remaining > 0)
            .values(
                ai_generations_remaining=models.Profile.ai_generations_remaining - 1,
                updated_at=self.clock(),
            )
        )
        return result.rowcount > 0

    def _refund(self, user_id: str) -> None:
        self.session.execute(
            update(models.Profile)
            .where(models.Profile.id == user_id)
            .values(
                ai_generations_remaining=models.Profile.ai_generations_remaining + 1,
                updated_at=self.clock(),
            )
        )

    def start(self, account: QuotaAccount, generation_type: str = MEAL_PLAN_GENERATION,
              prompt_data: Optional[Dict[str, Any]] = None) -> models.AIGenerationLog:
        """Reserve the credit and commit a `started` entry before the model is invoked.

        For Metered users the credit is taken here with a conditional UPDATE
        in the same commit as the entry, so concurrent requests cannot spend
        one credit twice.

        Raises:
            RateLimitExceededError: A concurrent request spent the last
                credit after the pre-check.
        """
        if not account.unlimited and not self._reserve(account.user_id):
            self.session.rollback()
            self._reject(account, generation_type, prompt_data, "No AI credits remaining", "no_credits")
        entry = self.logs.add(models.AIGenerationLog(
            user_id=account.user_id,
            generation_type=generation_type,
            prompt_data=_dump(prompt_data),
            status=STATUS_STARTED,
            credits_used=0 if account.unlimited else 1,
            created_at=self.clock(),
        ))
        self.session.commit()
        logger.info("Generation log %s started for user %s", entry.id, account.user_id)
        return entry

    def complete(self, entry: models.AIGenerationLog, response_data: Optional[Dict[str, Any]] = None) -> None:
        """Mark the entry completed; the reserved credit stays spent.

        Calling it for an entry that is no longer `started` is a no-op.
        """
        if entry.status != STATUS_STARTED:
            logger.warning("Generation log %s already %s; not completing again", entry.id, entry.status)
            return
        entry.status = STATUS_COMPLETED
        entry.response_data = _dump(response_data)
        entry.updated_at = self.clock()
        self.session.commit()
        logger.info("Generation log %s completed", entry.id)

    def fail(self, entry: models.AIGenerationLog, error_message: str) -> None:
        """Mark the entry failed and refund its reserved credit.

        Pending changes are rolled back and the entry is re-read first, so
        an entry whose completion did not commit is still failed. A database
        error here is logged rather than raised so the first failure reaches
        the caller.
        """
        try:
            self.session.rollback()
            self.session.refresh(entry)
            if entry.status != STATUS_STARTED:
                return
            if entry.credits_used:
                self._refund(entry.user_id)
            entry.status = STATUS_FAILED
            entry.credits_used = 0
            entry.error_message = error_message
            entry.updated_at = self.clock()
            self.session.commit()
            logger.info("Generation log %s failed: %s", entry.id, error_message)
        except SQLAlchemyError:
            self.session.rollback()
            logger.error("Could not mark generation log %s as failed", entry.id, exc_info=True)

    def usage(self, user_id: str, generation_type: str = MEAL_PLAN_GENERATION) -> Dict[str, Any]:
        """Quota summary for the credits endpoint; remaining is -1 when unlimited."""
        account = self.account(user_id)
        return {
            "user_id": account.user_id,
            "remaining": -1 if account.unlimited else account.remaining,
            "is_unlimited": account.unlimited,
            "generations_today": self.generations_today(user_id, generation_type),
            "daily_cap": self.settings.DAILY_GENERATION_CAP,
        }
