"""Grant fund engine facade using the Result pattern."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import AsyncIterator, Sequence

import structlog

from src.config.settings import GrantFundSettings, get_settings
from src.grantfund.clock import TickClock
from src.grantfund.errors import GrantFundError, ReentrantCallError
from src.grantfund.hashing import hash_proposal
from src.grantfund.interfaces import ActionExecutor, VotingPowerOracle
from src.grantfund.models import (
    DistributionPeriod,
    FundingVote,
    FundingVoteParams,
    FundingVoterInfo,
    PeriodStage,
    Proposal,
    ProposalState,
    ScreeningVoteParams,
    Slate,
    TransferAction,
)
from src.grantfund.services.funding_ledger import FundingLedger
from src.grantfund.services.period_manager import DistributionPeriodManager
from src.grantfund.services.proposal_executor import ProposalExecutor
from src.grantfund.services.reward_distributor import RewardDistributor
from src.grantfund.services.screening_ledger import ScreeningLedger
from src.grantfund.services.slate_arbiter import SlateArbiter
from src.grantfund.state import GrantFundState
from src.infra.events.grant_fund_events import GrantFundEvent
from src.infra.events.grant_fund_events import publish as publish_grant_fund_event
from src.infra.result import Ok, Result, async_returns_result

LOGGER = structlog.get_logger(__name__)

_EXCEPTION_MAP: dict[type[Exception], type[GrantFundError]] = {
    Exception: GrantFundError,
}


class GrantFundService:
    """撥款基金引擎：串接期間管理、篩選、資助投票、挑戰期與獎勵發放。

    All mutating coroutines run under a single lock, so each call is applied
    atomically and in arrival order. Every component validates completely
    before it mutates, so a rejected call leaves the state untouched.
    A mutator invoked from inside another one, such as an action executor
    calling back into the engine, fails with ``ReentrantCallError``.
    """

    def __init__(
        self,
        *,
        oracle: VotingPowerOracle,
        executor: ActionExecutor,
        clock: TickClock,
        settings: GrantFundSettings | None = None,
        state: GrantFundState | None = None,
    ) -> None:
        self._state = state or GrantFundState()
        self._lock = asyncio.Lock()
        self._holding_lock: ContextVar[bool] = ContextVar(
            f"grantfund_lock_{id(self)}", default=False
        )
        self.periods = DistributionPeriodManager(
            state=self._state, clock=clock, settings=settings or get_settings()
        )
        self.screening = ScreeningLedger(state=self._state, periods=self.periods, oracle=oracle)
        self.funding = FundingLedger(state=self._state, periods=self.periods, oracle=oracle)
        self.arbiter = SlateArbiter(state=self._state, periods=self.periods)
        self.executor = ProposalExecutor(state=self._state, periods=self.periods, executor=executor)
        self.rewards = RewardDistributor(state=self._state, periods=self.periods)

    @property
    def state(self) -> GrantFundState:
        return self._state

    @asynccontextmanager
    async def _serialized(self) -> AsyncIterator[None]:
        # the lock is not reentrant; nested calls fail instead of waiting on it
        if self._holding_lock.get():
            raise ReentrantCallError()
        async with self._lock:
            token = self._holding_lock.set(True)
            try:
                yield
            finally:
                self._holding_lock.reset(token)

    # --- Period lifecycle & treasury ---
    @async_returns_result(GrantFundError, exception_map=_EXCEPTION_MAP)
    async def start_new_distribution_period(self) -> Result[DistributionPeriod, GrantFundError]:
        async with self._serialized():
            result = self.periods.start_new_distribution_period()
        if isinstance(result, Ok):
            period = result.value
            await publish_grant_fund_event(
                GrantFundEvent(
                    period_id=period.period_id,
                    kind="distribution_period_started",
                    amount=period.funds_available,
                )
            )
        return result

    @async_returns_result(GrantFundError, exception_map=_EXCEPTION_MAP)
    async def fund_treasury(self, *, funder: str, amount: int) -> Result[int, GrantFundError]:
        async with self._serialized():
            result = self.periods.fund_treasury(amount)
        if isinstance(result, Ok):
            await publish_grant_fund_event(
                GrantFundEvent(
                    period_id=self._state.current_period_id,
                    kind="treasury_funded",
                    actor=funder,
                    amount=amount,
                )
            )
        return result

    # --- Screening ---
    @async_returns_result(GrantFundError, exception_map=_EXCEPTION_MAP)
    async def propose(
        self,
        *,
        proposer: str,
        actions: Sequence[TransferAction],
        description: str,
    ) -> Result[Proposal, GrantFundError]:
        async with self._serialized():
            result = self.screening.propose(
                proposer=proposer, actions=actions, description=description
            )
        if isinstance(result, Ok):
            proposal = result.value
            await publish_grant_fund_event(
                GrantFundEvent(
                    period_id=proposal.period_id,
                    kind="proposal_created",
                    proposal_id=proposal.proposal_id,
                    actor=proposer,
                    amount=proposal.tokens_requested,
                )
            )
        return result

    @async_returns_result(GrantFundError, exception_map=_EXCEPTION_MAP)
    async def screening_vote(
        self, *, voter: str, votes: Sequence[ScreeningVoteParams]
    ) -> Result[int, GrantFundError]:
        async with self._serialized():
            result = self.screening.screening_vote(voter=voter, votes=votes)
        if isinstance(result, Ok):
            await publish_grant_fund_event(
                GrantFundEvent(
                    period_id=self._state.current_period_id,
                    kind="screening_vote_cast",
                    actor=voter,
                    amount=sum(v.amount for v in votes),
                )
            )
        return result

    # --- Funding ---
    @async_returns_result(GrantFundError, exception_map=_EXCEPTION_MAP)
    async def funding_vote(
        self, *, voter: str, votes: Sequence[FundingVoteParams]
    ) -> Result[int, GrantFundError]:
        async with self._serialized():
            result = self.funding.funding_vote(voter=voter, votes=votes)
        if isinstance(result, Ok):
            await publish_grant_fund_event(
                GrantFundEvent(
                    period_id=self._state.current_period_id,
                    kind="funding_vote_cast",
                    actor=voter,
                    amount=result.value,
                )
            )
        return result

    # --- Challenge ---
    @async_returns_result(GrantFundError, exception_map=_EXCEPTION_MAP)
    async def update_slate(
        self, *, period_id: int, proposal_ids: Sequence[str], submitter: str | None = None
    ) -> Result[bool, GrantFundError]:
        async with self._serialized():
            result = self.arbiter.update_slate(period_id=period_id, proposal_ids=proposal_ids)
        if isinstance(result, Ok) and result.value:
            await publish_grant_fund_event(
                GrantFundEvent(period_id=period_id, kind="slate_updated", actor=submitter)
            )
        return result

    # --- Execution & rewards ---
    @async_returns_result(GrantFundError, exception_map=_EXCEPTION_MAP)
    async def execute(self, *, proposal_id: str) -> Result[Proposal, GrantFundError]:
        async with self._serialized():
            result = await self.executor.execute(proposal_id=proposal_id)
        if isinstance(result, Ok):
            proposal = result.value
            await publish_grant_fund_event(
                GrantFundEvent(
                    period_id=proposal.period_id,
                    kind="proposal_executed",
                    proposal_id=proposal.proposal_id,
                    amount=proposal.tokens_requested,
                )
            )
        return result

    @async_returns_result(GrantFundError, exception_map=_EXCEPTION_MAP)
    async def claim_delegate_reward(
        self, *, voter: str, period_id: int
    ) -> Result[int, GrantFundError]:
        async with self._serialized():
            result = self.rewards.claim_delegate_reward(voter=voter, period_id=period_id)
        if isinstance(result, Ok):
            await publish_grant_fund_event(
                GrantFundEvent(
                    period_id=period_id,
                    kind="delegate_reward_claimed",
                    actor=voter,
                    amount=result.value,
                )
            )
        return result

    # --- Queries (side-effect free) ---
    @property
    def treasury(self) -> int:
        return self.periods.treasury

    def current_period(self) -> DistributionPeriod | None:
        return self.periods.current_period()

    def get_period(self, period_id: int) -> Result[DistributionPeriod, GrantFundError]:
        return self.periods.get_period(period_id)

    def get_stage(self, period_id: int) -> Result[PeriodStage, GrantFundError]:
        return self.periods.get_stage(period_id)

    def get_proposal(self, proposal_id: str) -> Result[Proposal, GrantFundError]:
        return self.screening.get_proposal(proposal_id)

    def get_top_ten(self, period_id: int) -> list[str]:
        return self.screening.get_top_ten(period_id)

    def screening_votes_cast(self, *, period_id: int, voter: str) -> int:
        return self.screening.screening_votes_cast(period_id, voter)

    def funding_votes_cast(self, *, period_id: int, voter: str) -> list[FundingVote]:
        return self.funding.funding_votes_cast(period_id, voter)

    def voter_info(self, *, period_id: int, voter: str) -> Result[FundingVoterInfo, GrantFundError]:
        return self.funding.voter_info(period_id, voter)

    def get_funding_power_votes(self, budget: int) -> int:
        return self.funding.get_funding_power_votes(budget)

    def winning_slate(self, period_id: int) -> Slate | None:
        return self.arbiter.winning_slate(period_id)

    def slate_hash(self, period_id: int) -> str | None:
        return self.arbiter.slate_hash(period_id)

    def funded_proposal_slate(self, slate_hash: str) -> list[str]:
        return self.arbiter.funded_proposal_slate(slate_hash)

    def find_best_slate(self, period_id: int) -> Result[list[str], GrantFundError]:
        return self.arbiter.find_best_slate(period_id)

    def proposal_state(self, proposal_id: str) -> Result[ProposalState, GrantFundError]:
        return self.executor.proposal_state(proposal_id)

    def get_delegate_reward(self, *, period_id: int, voter: str) -> Result[int, GrantFundError]:
        return self.rewards.get_delegate_reward(voter=voter, period_id=period_id)

    def has_claimed_reward(self, *, period_id: int, voter: str) -> bool:
        return self.rewards.has_claimed_reward(voter=voter, period_id=period_id)

    @staticmethod
    def hash_proposal(actions: Sequence[TransferAction], description: str) -> str:
        return hash_proposal(actions, description)


__all__ = ["GrantFundService"]
