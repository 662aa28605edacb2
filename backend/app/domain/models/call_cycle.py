"""
Call Cycle Policy Model
Attempt limits and cooldown windows for automatic lead dialing
"""
from pydantic import BaseModel, Field
from typing import List, Optional, Tuple
from datetime import datetime, timedelta

from app.domain.models.lead import Lead, CallConnectionStatus
from app.domain.services.phone_numbers import digit_count


class EligibilityCriteria(BaseModel):
    """
    Store-side query for auto-call candidates.

    A lead matches when its status is in `statuses`, it is not soft-deleted,
    it has a contact number and a project name, and one of:
    - attempts unset or 0
    - attempts == 1 and last_call_time < second_attempt_before
    - attempts >= 2 and last_call_time < new_cycle_before

    Results are ordered oldest-created first.
    """
    statuses: List[CallConnectionStatus]
    second_attempt_before: datetime
    new_cycle_before: datetime
    project_name: Optional[str] = None
    user_id: Optional[str] = None


class AttemptPlan(BaseModel):
    """Attempt bookkeeping a successful dispatch will persist"""
    attempt_number: int
    cycle_start_time: datetime
    new_cycle: bool = False


class CallCyclePolicy(BaseModel):
    """
    Two-attempt-per-cycle retry policy.

    A cycle allows `max_attempts_per_cycle` attempts. The second attempt
    needs `second_attempt_after_minutes` since the first; once the cycle is
    exhausted the lead waits `new_cycle_after_minutes` since its last call
    before a fresh cycle starts.
    """

    max_attempts_per_cycle: int = Field(
        default=2,
        ge=1,
        description="Call attempts allowed within one cycle"
    )
    second_attempt_after_minutes: int = Field(
        default=5,
        ge=0,
        description="Minutes between attempts inside a cycle"
    )
    new_cycle_after_minutes: int = Field(
        default=60,
        ge=1,
        description="Minutes after the last attempt before a new cycle may start"
    )
    min_phone_digits: int = Field(
        default=10,
        ge=1,
        description="Minimum digits for a plausible phone number"
    )
    eligible_statuses: List[CallConnectionStatus] = Field(
        default=[CallConnectionStatus.PENDING, CallConnectionStatus.FAILED],
        description="Lead statuses that can be auto-called"
    )

    @property
    def second_attempt_delay(self) -> timedelta:
        return timedelta(minutes=self.second_attempt_after_minutes)

    @property
    def new_cycle_delay(self) -> timedelta:
        return timedelta(minutes=self.new_cycle_after_minutes)

    def cooldown_cutoffs(self, now: datetime) -> Tuple[datetime, datetime]:
        """
        `last_call_time` cutoffs for the store query.

        Returns:
            (second_attempt_before, new_cycle_before)
        """
        return now - self.second_attempt_delay, now - self.new_cycle_delay

    def criteria(
        self,
        now: datetime,
        project_name: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> EligibilityCriteria:
        """Build the store query for `now`."""
        second_attempt_before, new_cycle_before = self.cooldown_cutoffs(now)
        return EligibilityCriteria(
            statuses=list(self.eligible_statuses),
            second_attempt_before=second_attempt_before,
            new_cycle_before=new_cycle_before,
            project_name=project_name,
            user_id=user_id
        )

    def is_eligible(self, lead: Lead, now: datetime) -> Tuple[bool, str]:
        """
        Check whether a lead may be dialed now (dedup set not included).

        Returns:
            (is_eligible, reason)
        """
        if lead.call_connection_status not in self.eligible_statuses:
            return False, f"status_{lead.call_connection_status.value}"

        if lead.deleted_at is not None:
            return False, "deleted"

        if digit_count(lead.contact_number or "") < self.min_phone_digits:
            return False, "invalid_phone"

        if not (lead.project_name or "").strip():
            return False, "no_project"

        attempts = lead.attempts
        if attempts == 0:
            return True, "never_called"

        if lead.last_call_time is None:
            # Attempts recorded without a call time never match the cooldown query
            return False, "missing_last_call_time"

        elapsed = now - lead.last_call_time

        if attempts == 1:
            if elapsed >= self.second_attempt_delay:
                return True, "second_attempt"
            remaining = self.second_attempt_delay - elapsed
            return False, f"second_attempt_in_{int(remaining.total_seconds() // 60) + 1}m"

        if elapsed >= self.new_cycle_delay:
            return True, "new_cycle"
        remaining = self.new_cycle_delay - elapsed
        return False, f"cycle_complete_new_cycle_in_{int(remaining.total_seconds() // 60) + 1}m"

    def cycle_expired(self, lead: Lead, now: datetime) -> bool:
        """True when an exhausted cycle has cooled down and may be reset."""
        reference = lead.call_cycle_start_time or lead.last_call_time
        if reference is None:
            return False
        return now - reference >= self.new_cycle_delay

    def plan_attempt(self, lead: Lead, now: datetime) -> Optional[AttemptPlan]:
        """
        Compute the attempt number and cycle start for the next dispatch.

        Returns None when another attempt would exceed the per-cycle limit
        inside a cycle that is still open.
        """
        attempts = lead.attempts

        if attempts >= self.max_attempts_per_cycle:
            if lead.last_call_time is not None and now - lead.last_call_time >= self.new_cycle_delay:
                return AttemptPlan(attempt_number=1, cycle_start_time=now, new_cycle=True)
            return None

        next_attempt = attempts + 1
        cycle_start = lead.call_cycle_start_time or now

        if next_attempt > self.max_attempts_per_cycle and now - cycle_start < self.new_cycle_delay:
            return None

        return AttemptPlan(
            attempt_number=next_attempt,
            cycle_start_time=cycle_start,
            new_cycle=lead.call_cycle_start_time is None
        )

    @classmethod
    def default(cls) -> "CallCyclePolicy":
        """Create the default policy."""
        return cls()

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "CallCyclePolicy":
        """Create from a config section."""
        if not data:
            return cls.default()
        return cls(**data)
