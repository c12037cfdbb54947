from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

__all__ = [
    "PeriodStage",
    "ProposalState",
    "TransferAction",
    "DistributionPeriod",
    "Proposal",
    "ScreeningVoteParams",
    "ScreeningVote",
    "FundingVoteParams",
    "FundingVote",
    "FundingVoterInfo",
    "Slate",
    "DelegateRewardRecord",
]


class PeriodStage(str, Enum):
    """Where a distribution period sits relative to the current tick."""

    SCREENING = "screening"
    FUNDING = "funding"
    # the end tick itself: funding has closed and the challenge window has not opened
    TALLY = "tally"
    CHALLENGE = "challenge"
    CLOSED = "closed"


class ProposalState(str, Enum):
    ACTIVE = "active"
    DEFEATED = "defeated"
    SUCCEEDED = "succeeded"
    EXECUTED = "executed"


@dataclass(slots=True, frozen=True)
class TransferAction:
    """A single bounded transfer of the fund token out of the treasury."""

    token: str
    recipient: str
    amount: int


@dataclass(slots=True, frozen=True)
class DistributionPeriod:
    period_id: int
    start_tick: int
    end_tick: int
    funding_start_tick: int
    challenge_end_tick: int
    funds_available: int
    funding_votes_cast: int = 0
    winning_slate_hash: str | None = None
    surplus_folded: bool = False


@dataclass(slots=True, frozen=True)
class Proposal:
    proposal_id: str
    period_id: int
    proposer: str
    actions: tuple[TransferAction, ...]
    description: str
    tokens_requested: int
    submission_index: int
    screening_votes_received: int = 0
    net_funding_votes_received: int = 0
    executed: bool = False


@dataclass(slots=True, frozen=True)
class ScreeningVoteParams:
    proposal_id: str
    amount: int


@dataclass(slots=True, frozen=True)
class ScreeningVote:
    voter: str
    proposal_id: str
    amount: int


@dataclass(slots=True, frozen=True)
class FundingVoteParams:
    proposal_id: str
    votes_used: int


@dataclass(slots=True, frozen=True)
class FundingVote:
    """Accumulated signed votes of one voter on one proposal."""

    voter: str
    proposal_id: str
    votes_used: int

    @property
    def direction(self) -> int:
        return (self.votes_used > 0) - (self.votes_used < 0)


@dataclass(slots=True, frozen=True)
class FundingVoterInfo:
    voter: str
    period_id: int
    funding_power: int
    budget_remaining: int
    votes_cast: int


@dataclass(slots=True, frozen=True)
class Slate:
    period_id: int
    proposal_ids: tuple[str, ...]
    slate_hash: str
    total_net_votes: int
    tokens_requested: int


@dataclass(slots=True, frozen=True)
class DelegateRewardRecord:
    voter: str
    period_id: int
    claimed: bool
    amount: int
