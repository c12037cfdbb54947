from __future__ import annotations

from dataclasses import dataclass, field

from src.grantfund.models import (
    DelegateRewardRecord,
    DistributionPeriod,
    Proposal,
    ScreeningVote,
    Slate,
)

VoterKey = tuple[int, str]


@dataclass(slots=True)
class GrantFundState:
    """All mutable ledgers of the engine, owned by one aggregate.

    Components receive this object by reference; nothing is module-global.
    Records are frozen dataclasses replaced wholesale on change.
    """

    treasury: int = 0
    current_period_id: int = 0
    periods: dict[int, DistributionPeriod] = field(default_factory=dict)

    proposals: dict[str, Proposal] = field(default_factory=dict)
    period_proposals: dict[int, list[str]] = field(default_factory=dict)
    next_submission_index: int = 0

    # screening
    top_ten: dict[int, list[str]] = field(default_factory=dict)
    screening_log: dict[int, list[ScreeningVote]] = field(default_factory=dict)
    screening_cast: dict[VoterKey, int] = field(default_factory=dict)

    # funding: accumulated signed votes per proposal, in first-touch order
    funding_votes: dict[VoterKey, dict[str, int]] = field(default_factory=dict)
    voter_costs: dict[VoterKey, int] = field(default_factory=dict)

    # challenge
    slates: dict[str, Slate] = field(default_factory=dict)

    # rewards
    rewards: dict[VoterKey, DelegateRewardRecord] = field(default_factory=dict)
    rewards_paid: dict[int, int] = field(default_factory=dict)

    def proposals_of(self, period_id: int) -> list[Proposal]:
        return [self.proposals[pid] for pid in self.period_proposals.get(period_id, [])]

    def winning_slate(self, period_id: int) -> Slate | None:
        period = self.periods.get(period_id)
        if period is None or period.winning_slate_hash is None:
            return None
        return self.slates.get(period.winning_slate_hash)


__all__ = ["GrantFundState", "VoterKey"]
