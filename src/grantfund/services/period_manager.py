"""Distribution period lifecycle and treasury bookkeeping."""

from __future__ import annotations

from dataclasses import replace

import structlog

from src.config.settings import GrantFundSettings, get_settings
from src.grantfund.clock import TickClock
from src.grantfund.errors import (
    GrantFundError,
    InvalidAmountError,
    PeriodNotFoundError,
    PeriodStillActiveError,
    WrongStageError,
)
from src.grantfund.maths import ratio_of
from src.grantfund.models import DistributionPeriod, PeriodStage
from src.grantfund.state import GrantFundState
from src.infra.result import Ok, Result, record_err

LOGGER = structlog.get_logger(__name__)


class DistributionPeriodManager:
    """Owns the period clock, the treasury and each period's budget (GBC).

    Every stage-sensitive operation of the other components asks this manager
    whether the referenced period is in the right stage.
    """

    def __init__(
        self,
        *,
        state: GrantFundState,
        clock: TickClock,
        settings: GrantFundSettings | None = None,
    ) -> None:
        self._state = state
        self._clock = clock
        self._settings = settings or get_settings()

    @property
    def settings(self) -> GrantFundSettings:
        return self._settings

    @property
    def treasury(self) -> int:
        return self._state.treasury

    def now(self) -> int:
        return self._clock.current_tick()

    # --- Treasury ---
    def fund_treasury(self, amount: int) -> Result[int, GrantFundError]:
        """Add ``amount`` to the treasury; open periods keep their budget."""
        if amount <= 0:
            return record_err(InvalidAmountError(context={"amount": amount}))
        self._state.treasury += amount
        LOGGER.info("grantfund.treasury.funded", amount=amount, treasury=self._state.treasury)
        return Ok(self._state.treasury)

    # --- Period lifecycle ---
    def start_new_distribution_period(self) -> Result[DistributionPeriod, GrantFundError]:
        now = self.now()
        current = self.current_period()
        if current is not None and now <= current.end_tick:
            return record_err(
                PeriodStillActiveError(
                    context={
                        "period_id": current.period_id,
                        "end_tick": current.end_tick,
                        "tick": now,
                    }
                )
            )

        # 先將已結束挑戰期的剩餘資金回收至金庫，再計算新期預算
        for period in list(self._state.periods.values()):
            if period.surplus_folded or now <= period.challenge_end_tick:
                continue
            surplus = self.surplus_of(period)
            self._state.treasury += surplus
            self._state.periods[period.period_id] = replace(period, surplus_folded=True)
            LOGGER.info(
                "grantfund.treasury.surplus_folded",
                period_id=period.period_id,
                surplus=surplus,
                treasury=self._state.treasury,
            )

        settings = self._settings
        funds_available = ratio_of(self._state.treasury, settings.global_budget_constraint)
        self._state.treasury -= funds_available

        period_id = self._state.current_period_id + 1
        end_tick = now + settings.distribution_period_length
        period = DistributionPeriod(
            period_id=period_id,
            start_tick=now,
            end_tick=end_tick,
            funding_start_tick=end_tick - settings.funding_period_length,
            challenge_end_tick=end_tick + settings.challenge_period_length,
            funds_available=funds_available,
        )
        self._state.periods[period_id] = period
        self._state.period_proposals[period_id] = []
        self._state.top_ten[period_id] = []
        self._state.current_period_id = period_id

        LOGGER.info(
            "grantfund.period.started",
            period_id=period_id,
            start_tick=period.start_tick,
            end_tick=period.end_tick,
            funds_available=funds_available,
            treasury=self._state.treasury,
        )
        return Ok(period)

    def surplus_of(self, period: DistributionPeriod) -> int:
        """Budget a finished period hands back: GBC minus funded slate minus reward pool."""
        slate = self._state.winning_slate(period.period_id)
        funded = slate.tokens_requested if slate is not None else 0
        surplus = period.funds_available - funded - self.reward_pool(period)
        return max(surplus, 0)

    # --- Budget derivations ---
    def slate_budget(self, period: DistributionPeriod) -> int:
        return ratio_of(period.funds_available, self._settings.slate_budget_ratio)

    def reward_pool(self, period: DistributionPeriod) -> int:
        return ratio_of(period.funds_available, self._settings.delegate_reward_ratio)

    def request_cap(self, period: DistributionPeriod) -> int:
        return ratio_of(period.funds_available, self._settings.max_request_ratio)

    # --- Queries ---
    def current_period(self) -> DistributionPeriod | None:
        return self._state.periods.get(self._state.current_period_id)

    def get_period(self, period_id: int) -> Result[DistributionPeriod, GrantFundError]:
        period = self._state.periods.get(period_id)
        if period is None:
            return record_err(PeriodNotFoundError(context={"period_id": period_id}))
        return Ok(period)

    def stage_of(self, period: DistributionPeriod, tick: int | None = None) -> PeriodStage:
        now = self.now() if tick is None else tick
        if now < period.funding_start_tick:
            return PeriodStage.SCREENING
        if now < period.end_tick:
            return PeriodStage.FUNDING
        if now == period.end_tick:
            return PeriodStage.TALLY
        if now <= period.challenge_end_tick:
            return PeriodStage.CHALLENGE
        return PeriodStage.CLOSED

    def get_stage(self, period_id: int) -> Result[PeriodStage, GrantFundError]:
        return self.get_period(period_id).map(self.stage_of)

    def require_stage(
        self,
        period_id: int,
        stage: PeriodStage,
        *,
        error_type: type[WrongStageError] = WrongStageError,
    ) -> Result[DistributionPeriod, GrantFundError]:
        """Return the period if it is currently in ``stage``, else a stage error."""
        found = self.get_period(period_id)
        if found.is_err():
            return found
        period = found.unwrap()
        actual = self.stage_of(period)
        if actual is not stage:
            return record_err(
                error_type(
                    context={
                        "period_id": period_id,
                        "expected_stage": stage.value,
                        "stage": actual.value,
                        "tick": self.now(),
                    }
                )
            )
        return Ok(period)


__all__ = ["DistributionPeriodManager"]
