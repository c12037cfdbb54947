"""Delegate rewards proportional to the quadratic cost each voter spent."""

from __future__ import annotations

import structlog

from src.grantfund.errors import (
    DelegateRewardInvalidError,
    GrantFundError,
    PeriodNotFoundError,
    RewardAlreadyClaimedError,
)
from src.grantfund.maths import WAD
from src.grantfund.models import DelegateRewardRecord, DistributionPeriod, PeriodStage
from src.grantfund.services.period_manager import DistributionPeriodManager
from src.grantfund.state import GrantFundState
from src.infra.result import Ok, Result, record_err

LOGGER = structlog.get_logger(__name__)


class RewardDistributor:
    """Pays each participating delegate a share of the period's reward pool.

    share = funds_available * reward_ratio * voter_cost / total_cost, floored.
    The denominator counts every funding vote of the period, including votes on
    proposals that did not make the winning slate.
    """

    def __init__(self, *, state: GrantFundState, periods: DistributionPeriodManager) -> None:
        self._state = state
        self._periods = periods

    def _compute_reward(self, period: DistributionPeriod, voter: str) -> int:
        total_cost = period.funding_votes_cast
        if total_cost == 0:
            return 0
        voter_cost = self._state.voter_costs.get((period.period_id, voter), 0)
        ratio = self._periods.settings.delegate_reward_ratio
        return period.funds_available * ratio * voter_cost // (total_cost * WAD)

    def claim_delegate_reward(self, *, voter: str, period_id: int) -> Result[int, GrantFundError]:
        found = self._periods.require_stage(period_id, PeriodStage.CLOSED)
        if found.is_err():
            return found
        period = found.unwrap()

        key = (period_id, voter)
        existing = self._state.rewards.get(key)
        if existing is not None and existing.claimed:
            return record_err(
                RewardAlreadyClaimedError(context={"voter": voter, "period_id": period_id})
            )
        if self._state.screening_cast.get(key, 0) == 0:
            return record_err(
                DelegateRewardInvalidError(
                    "Voter cast no screening votes in this period.",
                    context={"voter": voter, "period_id": period_id},
                )
            )

        amount = self._compute_reward(period, voter)
        self._state.rewards[key] = DelegateRewardRecord(
            voter=voter, period_id=period_id, claimed=True, amount=amount
        )
        self._state.rewards_paid[period_id] = self._state.rewards_paid.get(period_id, 0) + amount
        LOGGER.info(
            "grantfund.rewards.claimed",
            voter=voter,
            period_id=period_id,
            amount=amount,
            paid_total=self._state.rewards_paid[period_id],
        )
        return Ok(amount)

    # --- Queries ---
    def get_delegate_reward(self, *, voter: str, period_id: int) -> Result[int, GrantFundError]:
        """Reward the voter would receive, without claiming it."""
        period = self._state.periods.get(period_id)
        if period is None:
            return record_err(PeriodNotFoundError(context={"period_id": period_id}))
        return Ok(self._compute_reward(period, voter))

    def has_claimed_reward(self, *, voter: str, period_id: int) -> bool:
        record = self._state.rewards.get((period_id, voter))
        return record is not None and record.claimed

    def reward_record(self, *, voter: str, period_id: int) -> DelegateRewardRecord:
        record = self._state.rewards.get((period_id, voter))
        if record is None:
            return DelegateRewardRecord(voter=voter, period_id=period_id, claimed=False, amount=0)
        return record

    def rewards_paid(self, period_id: int) -> int:
        return self._state.rewards_paid.get(period_id, 0)


__all__ = ["RewardDistributor"]
