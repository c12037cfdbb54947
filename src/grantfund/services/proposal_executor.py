from __future__ import annotations

from dataclasses import replace

import structlog

from src.grantfund.errors import (
    ExecuteProposalInvalidError,
    ExecutionFailedError,
    GrantFundError,
    ProposalNotFoundError,
    ProposalNotSuccessfulError,
)
from src.grantfund.interfaces import ActionExecutor
from src.grantfund.models import PeriodStage, Proposal, ProposalState
from src.grantfund.services.period_manager import DistributionPeriodManager
from src.grantfund.state import GrantFundState
from src.infra.result import Ok, Result, record_err

LOGGER = structlog.get_logger(__name__)


class ProposalExecutor:
    """Executes members of a period's final slate, each at most once."""

    def __init__(
        self,
        *,
        state: GrantFundState,
        periods: DistributionPeriodManager,
        executor: ActionExecutor,
    ) -> None:
        self._state = state
        self._periods = periods
        self._executor = executor

    async def execute(self, *, proposal_id: str) -> Result[Proposal, GrantFundError]:
        proposal = self._state.proposals.get(proposal_id)
        if proposal is None:
            return record_err(ProposalNotFoundError(context={"proposal_id": proposal_id}))

        found = self._periods.require_stage(proposal.period_id, PeriodStage.CLOSED)
        if found.is_err():
            return found

        context = {"proposal_id": proposal_id, "period_id": proposal.period_id}
        if proposal.executed:
            return record_err(
                ExecuteProposalInvalidError("Proposal has already been executed.", context=context)
            )
        slate = self._state.winning_slate(proposal.period_id)
        if slate is None or not slate.proposal_ids:
            return record_err(
                ExecuteProposalInvalidError("Period has no funded slate.", context=context)
            )
        if proposal_id not in slate.proposal_ids:
            return record_err(ProposalNotSuccessfulError(context=context))

        # 外部執行器失敗時不改變任何狀態，可於稍後重試
        try:
            succeeded = await self._executor.execute(proposal.actions)
        except Exception as exc:
            LOGGER.error("grantfund.execute.executor_error", error=str(exc), **context)
            return record_err(ExecutionFailedError(str(exc), context=context, cause=exc))
        if not succeeded:
            return record_err(ExecutionFailedError("Action executor rejected the proposal.", context=context))

        executed = replace(proposal, executed=True)
        self._state.proposals[proposal_id] = executed
        LOGGER.info(
            "grantfund.execute.proposal_executed",
            tokens_requested=proposal.tokens_requested,
            **context,
        )
        return Ok(executed)

    def proposal_state(self, proposal_id: str) -> Result[ProposalState, GrantFundError]:
        proposal = self._state.proposals.get(proposal_id)
        if proposal is None:
            return record_err(ProposalNotFoundError(context={"proposal_id": proposal_id}))
        if proposal.executed:
            return Ok(ProposalState.EXECUTED)
        period = self._state.periods[proposal.period_id]
        if self._periods.stage_of(period) is not PeriodStage.CLOSED:
            return Ok(ProposalState.ACTIVE)
        slate = self._state.winning_slate(proposal.period_id)
        if slate is not None and proposal_id in slate.proposal_ids:
            return Ok(ProposalState.SUCCEEDED)
        return Ok(ProposalState.DEFEATED)


__all__ = ["ProposalExecutor"]
