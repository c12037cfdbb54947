"""Proposal intake and plurality screening votes."""

from __future__ import annotations

from dataclasses import replace
from typing import Sequence

import structlog

from src.grantfund.errors import (
    GrantFundError,
    InsufficientVotingPowerError,
    InvalidProposalError,
    InvalidVoteError,
    PeriodNotFoundError,
    ProposalAlreadyExistsError,
    ProposalNotFoundError,
    ScreeningPeriodEndedError,
)
from src.grantfund.hashing import hash_proposal
from src.grantfund.interfaces import VotingPowerOracle
from src.grantfund.models import (
    DistributionPeriod,
    PeriodStage,
    Proposal,
    ScreeningVote,
    ScreeningVoteParams,
    TransferAction,
)
from src.grantfund.services.period_manager import DistributionPeriodManager
from src.grantfund.services.top_ten import rerank
from src.grantfund.state import GrantFundState
from src.infra.result import Ok, Result, record_err

LOGGER = structlog.get_logger(__name__)


class ScreeningLedger:
    """篩選階段帳本：受理提案、記錄多數決投票並維護前十名排行。"""

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

    def _screening_period(self) -> Result[DistributionPeriod, GrantFundError]:
        current = self._periods.current_period()
        if current is None:
            return record_err(
                ScreeningPeriodEndedError(
                    "No distribution period has been started.",
                    context={"tick": self._periods.now()},
                )
            )
        return self._periods.require_stage(
            current.period_id, PeriodStage.SCREENING, error_type=ScreeningPeriodEndedError
        )

    # --- Proposals ---
    def propose(
        self,
        *,
        proposer: str,
        actions: Sequence[TransferAction],
        description: str,
    ) -> Result[Proposal, GrantFundError]:
        """Submit a funding request to the current period's screening stage."""
        found = self._screening_period()
        if found.is_err():
            return found
        period = found.unwrap()

        checked = self._validate_actions(period, actions, description)
        if checked.is_err():
            return checked
        tokens_requested = checked.unwrap()

        proposal_id = hash_proposal(actions, description)
        if proposal_id in self._state.proposals:
            return record_err(
                ProposalAlreadyExistsError(
                    context={
                        "proposal_id": proposal_id,
                        "period_id": self._state.proposals[proposal_id].period_id,
                    }
                )
            )

        proposal = Proposal(
            proposal_id=proposal_id,
            period_id=period.period_id,
            proposer=proposer,
            actions=tuple(actions),
            description=description,
            tokens_requested=tokens_requested,
            submission_index=self._state.next_submission_index,
        )
        self._state.next_submission_index += 1
        self._state.proposals[proposal_id] = proposal
        self._state.period_proposals.setdefault(period.period_id, []).append(proposal_id)

        LOGGER.info(
            "grantfund.screening.proposal_created",
            proposal_id=proposal_id,
            period_id=period.period_id,
            proposer=proposer,
            tokens_requested=tokens_requested,
        )
        return Ok(proposal)

    def _validate_actions(
        self,
        period: DistributionPeriod,
        actions: Sequence[TransferAction],
        description: str,
    ) -> Result[int, GrantFundError]:
        """Check the payload is a bounded transfer and return the total requested."""
        settings = self._periods.settings
        if not actions:
            return record_err(InvalidProposalError("Proposal must contain at least one transfer."))
        if not description.strip() or len(description) > settings.max_description_length:
            return record_err(
                InvalidProposalError(
                    "Proposal description is empty or too long.",
                    context={"length": len(description)},
                )
            )

        total = 0
        for action in actions:
            if action.token != settings.fund_token:
                return record_err(
                    InvalidProposalError(
                        "Proposals may only transfer the fund token.",
                        context={"token": action.token, "expected": settings.fund_token},
                    )
                )
            if not action.recipient.strip():
                return record_err(InvalidProposalError("Transfer recipient is missing."))
            if action.amount <= 0:
                return record_err(
                    InvalidProposalError(
                        "Transfer amount must be positive.",
                        context={"amount": action.amount},
                    )
                )
            total += action.amount

        cap = self._periods.request_cap(period)
        if total > cap:
            return record_err(
                InvalidProposalError(
                    "Proposal requests more than the period allows.",
                    context={"tokens_requested": total, "cap": cap},
                )
            )
        return Ok(total)

    # --- Voting ---
    def screening_vote(
        self, *, voter: str, votes: Sequence[ScreeningVoteParams]
    ) -> Result[int, GrantFundError]:
        """Cast screening votes; returns the voter's cumulative screening total."""
        found = self._screening_period()
        if found.is_err():
            return found
        period = found.unwrap()

        if not votes:
            return record_err(InvalidVoteError("No screening votes supplied."))

        # 依首次出現順序彙總同一提案的票數
        per_proposal: dict[str, int] = {}
        for vote in votes:
            proposal = self._state.proposals.get(vote.proposal_id)
            if proposal is None or proposal.period_id != period.period_id:
                return record_err(
                    InvalidVoteError(
                        "Proposal is not part of the current distribution period.",
                        context={"proposal_id": vote.proposal_id, "period_id": period.period_id},
                    )
                )
            if vote.amount <= 0:
                return record_err(
                    InvalidVoteError(
                        "Screening vote amount must be positive.",
                        context={"proposal_id": vote.proposal_id, "amount": vote.amount},
                    )
                )
            per_proposal[vote.proposal_id] = per_proposal.get(vote.proposal_id, 0) + vote.amount

        key = (period.period_id, voter)
        prior = self._state.screening_cast.get(key, 0)
        requested = sum(per_proposal.values())
        power = self._oracle.voting_power_at(voter, period.start_tick)
        if prior + requested > power:
            return record_err(
                InsufficientVotingPowerError(
                    context={
                        "voter": voter,
                        "period_id": period.period_id,
                        "voting_power": power,
                        "already_cast": prior,
                        "requested": requested,
                    }
                )
            )

        # validation complete; apply
        ranking = self._state.top_ten.setdefault(period.period_id, [])
        log = self._state.screening_log.setdefault(period.period_id, [])
        limit = self._periods.settings.top_proposals_limit
        for proposal_id, amount in per_proposal.items():
            proposal = self._state.proposals[proposal_id]
            self._state.proposals[proposal_id] = replace(
                proposal, screening_votes_received=proposal.screening_votes_received + amount
            )
            log.append(ScreeningVote(voter=voter, proposal_id=proposal_id, amount=amount))
            rerank(ranking, proposal_id, self._state.proposals, limit=limit)
        self._state.screening_cast[key] = prior + requested

        LOGGER.info(
            "grantfund.screening.vote_cast",
            voter=voter,
            period_id=period.period_id,
            proposals=len(per_proposal),
            amount=requested,
            total_cast=prior + requested,
        )
        return Ok(prior + requested)

    # --- Queries ---
    def get_top_ten(self, period_id: int) -> list[str]:
        return list(self._state.top_ten.get(period_id, []))

    def top_ten_proposals(self, period_id: int) -> list[Proposal]:
        return [self._state.proposals[pid] for pid in self._state.top_ten.get(period_id, [])]

    def screening_votes_cast(self, period_id: int, voter: str) -> int:
        return self._state.screening_cast.get((period_id, voter), 0)

    def screening_votes_log(self, period_id: int) -> list[ScreeningVote]:
        return list(self._state.screening_log.get(period_id, []))

    def screening_voting_power(self, period_id: int, voter: str) -> Result[int, GrantFundError]:
        period = self._state.periods.get(period_id)
        if period is None:
            return record_err(PeriodNotFoundError(context={"period_id": period_id}))
        return Ok(self._oracle.voting_power_at(voter, period.start_tick))

    def get_proposal(self, proposal_id: str) -> Result[Proposal, GrantFundError]:
        proposal = self._state.proposals.get(proposal_id)
        if proposal is None:
            return record_err(ProposalNotFoundError(context={"proposal_id": proposal_id}))
        return Ok(proposal)


__all__ = ["ScreeningLedger"]
