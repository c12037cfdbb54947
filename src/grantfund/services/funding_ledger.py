"""Quadratic funding votes over the frozen top ten."""

from __future__ import annotations

from dataclasses import replace
from typing import Sequence

import structlog

from src.grantfund.errors import (
    FundingVoteWrongDirectionError,
    GrantFundError,
    InsufficientVotingPowerError,
    InvalidVoteError,
    PeriodNotFoundError,
    WrongStageError,
)
from src.grantfund.interfaces import VotingPowerOracle
from src.grantfund.maths import WAD, sign, wsqrt
from src.grantfund.models import FundingVote, FundingVoteParams, FundingVoterInfo, PeriodStage
from src.grantfund.services.period_manager import DistributionPeriodManager
from src.grantfund.state import GrantFundState
from src.infra.result import Ok, Result, record_err

LOGGER = structlog.get_logger(__name__)


class FundingLedger:
    """Enforces the per-voter quadratic budget and the vote direction lock.

    A voter's budget is the square of their screening voting power. Spent
    budget is always recomputed as the sum of squares of the accumulated votes,
    compared exactly in raw (WAD squared) units.
    """

    def __init__(
        self,
        *,
        state: GrantFundState,
        periods: DistributionPeriodManager,
        oracle: VotingPowerOracle,
    ) -> None:
        self._state = state
        self._periods = periods
        self._oracle = oracle

    def funding_vote(
        self, *, voter: str, votes: Sequence[FundingVoteParams]
    ) -> Result[int, GrantFundError]:
        """Cast signed funding votes; returns the voter's remaining budget (WAD)."""
        current = self._periods.current_period()
        if current is None:
            return record_err(WrongStageError("No distribution period has been started."))
        found = self._periods.require_stage(current.period_id, PeriodStage.FUNDING)
        if found.is_err():
            return found
        period = found.unwrap()

        if not votes:
            return record_err(InvalidVoteError("No funding votes supplied."))

        key = (period.period_id, voter)
        existing = self._state.funding_votes.get(key, {})
        top_ten = set(self._state.top_ten.get(period.period_id, []))

        # work on a copy so a rejected call changes nothing
        accumulated = dict(existing)
        for vote in votes:
            if vote.proposal_id not in top_ten:
                return record_err(
                    InvalidVoteError(
                        "Proposal is not in the period's top ten.",
                        context={"proposal_id": vote.proposal_id, "period_id": period.period_id},
                    )
                )
            if vote.votes_used == 0:
                return record_err(
                    InvalidVoteError(
                        "Funding vote must be non-zero.",
                        context={"proposal_id": vote.proposal_id},
                    )
                )
            prior = accumulated.get(vote.proposal_id, 0)
            updated = prior + vote.votes_used
            if prior != 0 and sign(updated) != sign(prior):
                return record_err(
                    FundingVoteWrongDirectionError(
                        context={
                            "voter": voter,
                            "proposal_id": vote.proposal_id,
                            "prior": prior,
                            "votes_used": vote.votes_used,
                        }
                    )
                )
            accumulated[vote.proposal_id] = updated

        power = self._oracle.voting_power_at(voter, period.start_tick)
        spent_raw = sum(v * v for v in accumulated.values())
        budget_raw = power * power
        if spent_raw > budget_raw:
            return record_err(
                InsufficientVotingPowerError(
                    context={
                        "voter": voter,
                        "period_id": period.period_id,
                        "budget": budget_raw // WAD,
                        "required": spent_raw // WAD,
                    }
                )
            )

        # apply
        for proposal_id, value in accumulated.items():
            delta = value - existing.get(proposal_id, 0)
            if delta == 0:
                continue
            proposal = self._state.proposals[proposal_id]
            self._state.proposals[proposal_id] = replace(
                proposal,
                net_funding_votes_received=proposal.net_funding_votes_received + delta,
            )
        old_cost = self._state.voter_costs.get(key, 0)
        new_cost = spent_raw // WAD
        self._state.funding_votes[key] = accumulated
        self._state.voter_costs[key] = new_cost
        self._state.periods[period.period_id] = replace(
            period, funding_votes_cast=period.funding_votes_cast - old_cost + new_cost
        )

        remaining = (budget_raw - spent_raw) // WAD
        LOGGER.info(
            "grantfund.funding.vote_cast",
            voter=voter,
            period_id=period.period_id,
            proposals=len(votes),
            voter_cost=new_cost,
            budget_remaining=remaining,
        )
        return Ok(remaining)

    @staticmethod
    def get_funding_power_votes(budget: int) -> int:
        """Votes still castable in one direction with ``budget`` left (floored)."""
        if budget <= 0:
            return 0
        return wsqrt(budget)

    # --- Queries ---
    def funding_votes_cast(self, period_id: int, voter: str) -> list[FundingVote]:
        accumulated = self._state.funding_votes.get((period_id, voter), {})
        return [
            FundingVote(voter=voter, proposal_id=pid, votes_used=value)
            for pid, value in accumulated.items()
        ]

    def voter_cost(self, period_id: int, voter: str) -> int:
        return self._state.voter_costs.get((period_id, voter), 0)

    def voter_info(self, period_id: int, voter: str) -> Result[FundingVoterInfo, GrantFundError]:
        period = self._state.periods.get(period_id)
        if period is None:
            return record_err(PeriodNotFoundError(context={"period_id": period_id}))
        power = self._oracle.voting_power_at(voter, period.start_tick)
        accumulated = self._state.funding_votes.get((period_id, voter), {})
        spent_raw = sum(v * v for v in accumulated.values())
        return Ok(
            FundingVoterInfo(
                voter=voter,
                period_id=period_id,
                funding_power=power * power // WAD,
                budget_remaining=max(power * power - spent_raw, 0) // WAD,
                votes_cast=len(accumulated),
            )
        )


__all__ = ["FundingLedger"]
