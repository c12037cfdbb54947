from __future__ import annotations

import asyncio
from typing import Callable, Sequence

import pytest

from src.grantfund.clock import ManualClock
from src.grantfund.errors import (
    ExecuteProposalInvalidError,
    ExecutionFailedError,
    ProposalNotFoundError,
    ProposalNotSuccessfulError,
    ReentrantCallError,
    WrongStageError,
)
from src.grantfund.interfaces import ActionExecutor, RecordingActionExecutor
from src.grantfund.models import DistributionPeriod, Proposal, ProposalState, TransferAction
from src.grantfund.services.grant_fund_service import GrantFundService
from src.infra.result import Err, Ok
from tests.fixtures.grant_fund import fund, screen, to_challenge, to_closed, to_funding

VOTER = "0xdelegate"


class _ExplodingExecutor:
    """Executor whose transfer backend raises."""

    def __init__(self) -> None:
        self.attempts = 0

    async def execute(self, actions: Sequence[TransferAction]) -> bool:
        self.attempts += 1
        raise RuntimeError("rpc unavailable")


class _CallbackExecutor:
    """Executor that calls back into the engine before transferring."""

    def __init__(self) -> None:
        self.service: GrantFundService | None = None
        self.nested: list[object] = []

    async def execute(self, actions: Sequence[TransferAction]) -> bool:
        assert self.service is not None
        proposal_id = self.service.get_top_ten(1)[0]
        self.nested.append(await self.service.execute(proposal_id=proposal_id))
        self.nested.append(
            await self.service.claim_delegate_reward(voter=VOTER, period_id=1)
        )
        return True


def _closed_service(
    executor: ActionExecutor, settings, clock: ManualClock, oracle
) -> tuple[GrantFundService, Proposal]:
    """A service whose first period closed with a single funded proposal."""
    service = GrantFundService(oracle=oracle, executor=executor, clock=clock, settings=settings)
    service.periods.fund_treasury(10**27).unwrap()
    period = service.periods.start_new_distribution_period().unwrap()
    oracle.checkpoint(VOTER, 0, 10**20)
    action = TransferAction(token="AJNA", recipient="0xbuilder", amount=10**18)
    proposal = service.screening.propose(
        proposer="0xbuilder", actions=[action], description="tooling"
    ).unwrap()
    screen(service, VOTER, (proposal.proposal_id, 1))
    to_funding(clock, period)
    fund(service, VOTER, (proposal.proposal_id, 1))
    to_challenge(clock, period)
    service.arbiter.update_slate(period_id=1, proposal_ids=[proposal.proposal_id]).unwrap()
    to_closed(clock, period)
    return service, proposal


@pytest.fixture
def winners(
    service: GrantFundService,
    clock: ManualClock,
    funded_period: DistributionPeriod,
    make_proposal: Callable[..., Proposal],
    give_power: Callable[[str, int], None],
) -> list[Proposal]:
    """a and b form the winning slate, c was voted down; clock still in the challenge window."""
    a, b, c = make_proposal(1_000_000), make_proposal(2_000_000), make_proposal(3_000_000)
    give_power(VOTER, 100)
    screen(service, VOTER, (a.proposal_id, 30), (b.proposal_id, 20), (c.proposal_id, 10))
    to_funding(clock, funded_period)
    fund(service, VOTER, (a.proposal_id, 30), (b.proposal_id, 20), (c.proposal_id, -10))
    to_challenge(clock, funded_period)
    service.arbiter.update_slate(
        period_id=1, proposal_ids=[a.proposal_id, b.proposal_id]
    ).unwrap()
    return [a, b, c]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_execute_runs_actions_exactly_once(
    service: GrantFundService,
    clock: ManualClock,
    funded_period: DistributionPeriod,
    action_executor: RecordingActionExecutor,
    winners: list[Proposal],
) -> None:
    a, *_ = winners
    to_closed(clock, funded_period)
    assert service.proposal_state(a.proposal_id) == Ok(ProposalState.SUCCEEDED)

    result = await service.executor.execute(proposal_id=a.proposal_id)
    assert isinstance(result, Ok)
    assert result.value.executed
    assert action_executor.calls == [a.actions]
    assert service.proposal_state(a.proposal_id) == Ok(ProposalState.EXECUTED)

    again = await service.executor.execute(proposal_id=a.proposal_id)
    assert isinstance(again, Err)
    assert isinstance(again.error, ExecuteProposalInvalidError)
    assert len(action_executor.calls) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_concurrent_execution_through_facade_runs_once(
    service: GrantFundService,
    clock: ManualClock,
    funded_period: DistributionPeriod,
    action_executor: RecordingActionExecutor,
    winners: list[Proposal],
) -> None:
    _, b, _ = winners
    to_closed(clock, funded_period)
    results = await asyncio.gather(
        *(service.execute(proposal_id=b.proposal_id) for _ in range(5))
    )
    assert sum(isinstance(r, Ok) for r in results) == 1
    assert len(action_executor.calls) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_execute_non_member_is_not_successful(
    service: GrantFundService,
    clock: ManualClock,
    funded_period: DistributionPeriod,
    winners: list[Proposal],
) -> None:
    *_, c = winners
    to_closed(clock, funded_period)
    result = await service.executor.execute(proposal_id=c.proposal_id)
    assert isinstance(result, Err)
    assert isinstance(result.error, ProposalNotSuccessfulError)
    assert service.proposal_state(c.proposal_id) == Ok(ProposalState.DEFEATED)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_execute_during_challenge_window(
    service: GrantFundService, winners: list[Proposal]
) -> None:
    a, *_ = winners
    result = await service.executor.execute(proposal_id=a.proposal_id)
    assert isinstance(result, Err)
    assert isinstance(result.error, WrongStageError)
    assert service.proposal_state(a.proposal_id) == Ok(ProposalState.ACTIVE)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_execute_unknown_proposal(service: GrantFundService) -> None:
    result = await service.executor.execute(proposal_id="0xdeadbeef")
    assert isinstance(result, Err)
    assert isinstance(result.error, ProposalNotFoundError)
    assert isinstance(service.proposal_state("0xdeadbeef"), Err)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_execute_without_slate(
    service: GrantFundService,
    clock: ManualClock,
    funded_period: DistributionPeriod,
    make_proposal: Callable[..., Proposal],
) -> None:
    lonely = make_proposal(1_000)
    to_closed(clock, funded_period)
    result = await service.executor.execute(proposal_id=lonely.proposal_id)
    assert isinstance(result, Err)
    assert isinstance(result.error, ExecuteProposalInvalidError)
    assert service.proposal_state(lonely.proposal_id) == Ok(ProposalState.DEFEATED)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_rejected_execution_can_be_retried(
    service: GrantFundService,
    clock: ManualClock,
    funded_period: DistributionPeriod,
    action_executor: RecordingActionExecutor,
    winners: list[Proposal],
) -> None:
    a, *_ = winners
    to_closed(clock, funded_period)
    action_executor.should_fail = True

    failed = await service.executor.execute(proposal_id=a.proposal_id)
    assert isinstance(failed, Err)
    assert isinstance(failed.error, ExecutionFailedError)
    assert not service.get_proposal(a.proposal_id).unwrap().executed

    action_executor.should_fail = False
    assert isinstance(await service.executor.execute(proposal_id=a.proposal_id), Ok)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_raising_executor_is_reported(
    settings,
    clock: ManualClock,
    oracle,
) -> None:
    exploding = _ExplodingExecutor()
    assert isinstance(exploding, ActionExecutor)
    service, proposal = _closed_service(exploding, settings, clock, oracle)

    result = await service.execute(proposal_id=proposal.proposal_id)
    assert isinstance(result, Err)
    assert isinstance(result.error, ExecutionFailedError)
    assert isinstance(result.error.cause, RuntimeError)
    assert exploding.attempts == 1
    assert service.proposal_state(proposal.proposal_id) == Ok(ProposalState.SUCCEEDED)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_executor_calling_back_into_engine_fails_fast(
    settings,
    clock: ManualClock,
    oracle,
) -> None:
    callback = _CallbackExecutor()
    service, proposal = _closed_service(callback, settings, clock, oracle)
    callback.service = service

    result = await asyncio.wait_for(service.execute(proposal_id=proposal.proposal_id), timeout=2)

    assert isinstance(result, Ok)
    assert len(callback.nested) == 2
    for nested in callback.nested:
        assert isinstance(nested, Err)
        assert isinstance(nested.error, ReentrantCallError)
        assert isinstance(nested.error, ExecuteProposalInvalidError)
    assert service.proposal_state(proposal.proposal_id) == Ok(ProposalState.EXECUTED)
    assert not service.has_claimed_reward(period_id=1, voter=VOTER)

    # the lock is released afterwards, so ordinary calls go through
    claimed = await asyncio.wait_for(
        service.claim_delegate_reward(voter=VOTER, period_id=1), timeout=2
    )
    assert isinstance(claimed, Ok)
