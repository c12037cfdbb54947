"""Challenge-window arbitration of the funded proposal slate."""

from __future__ import annotations

from dataclasses import replace
from itertools import combinations
from typing import Sequence

import structlog

from src.grantfund.errors import GrantFundError, InvalidProposalSlateError
from src.grantfund.hashing import hash_slate
from src.grantfund.models import PeriodStage, Proposal, Slate
from src.grantfund.services.period_manager import DistributionPeriodManager
from src.grantfund.state import GrantFundState
from src.infra.result import Ok, Result, record_err

LOGGER = structlog.get_logger(__name__)


def total_net_votes(proposals: Sequence[Proposal]) -> int:
    return sum(p.net_funding_votes_received for p in proposals)


def is_strictly_better(
    candidate: Sequence[Proposal], incumbent: Sequence[Proposal] | None
) -> bool:
    """Whether ``candidate`` beats ``incumbent`` on total net funding votes.

    Totals come from the proposals' own tallies, never from the submitter.
    Without an incumbent any positive total wins.
    """
    candidate_total = total_net_votes(candidate)
    if incumbent is None:
        return candidate_total > 0
    return candidate_total > total_net_votes(incumbent)


class SlateArbiter:
    """Keeps the best valid slate submitted during a period's challenge window.

    Anyone may submit; a slate replaces the incumbent only if it is feasible and
    strictly better, so the stored answer only ever improves.
    """

    def __init__(self, *, state: GrantFundState, periods: DistributionPeriodManager) -> None:
        self._state = state
        self._periods = periods

    def update_slate(
        self, *, period_id: int, proposal_ids: Sequence[str]
    ) -> Result[bool, GrantFundError]:
        found = self._periods.require_stage(period_id, PeriodStage.CHALLENGE)
        if found.is_err():
            return found
        period = found.unwrap()

        ids = list(proposal_ids)
        ranking = self._state.top_ten.get(period_id, [])
        context = {"period_id": period_id, "proposal_ids": ids}

        if any(pid not in ranking for pid in ids):
            return record_err(
                InvalidProposalSlateError("Slate contains a proposal outside the top ten.", context=context)
            )
        if len(set(ids)) != len(ids):
            return record_err(
                InvalidProposalSlateError("Slate contains duplicate proposals.", context=context)
            )
        members = [self._state.proposals[pid] for pid in ids]
        if any(p.net_funding_votes_received <= 0 for p in members):
            return record_err(
                InvalidProposalSlateError(
                    "Slate contains a proposal without positive net funding votes.",
                    context=context,
                )
            )
        tokens_requested = sum(p.tokens_requested for p in members)
        budget = self._periods.slate_budget(period)
        if tokens_requested > budget:
            return record_err(
                InvalidProposalSlateError(
                    "Slate requests more than the period's slate budget.",
                    context={**context, "tokens_requested": tokens_requested, "budget": budget},
                )
            )

        incumbent_slate = self._state.winning_slate(period_id)
        incumbent = (
            [self._state.proposals[pid] for pid in incumbent_slate.proposal_ids]
            if incumbent_slate is not None
            else None
        )
        if not is_strictly_better(members, incumbent):
            LOGGER.debug(
                "grantfund.slate.not_improved",
                period_id=period_id,
                candidate_votes=total_net_votes(members),
            )
            return Ok(False)

        slate = Slate(
            period_id=period_id,
            proposal_ids=tuple(ids),
            slate_hash=hash_slate(ids),
            total_net_votes=total_net_votes(members),
            tokens_requested=tokens_requested,
        )
        self._state.slates[slate.slate_hash] = slate
        self._state.periods[period_id] = replace(period, winning_slate_hash=slate.slate_hash)

        LOGGER.info(
            "grantfund.slate.updated",
            period_id=period_id,
            slate_hash=slate.slate_hash,
            proposals=len(ids),
            total_net_votes=slate.total_net_votes,
            tokens_requested=tokens_requested,
        )
        return Ok(True)

    def find_best_slate(self, period_id: int) -> Result[list[str], GrantFundError]:
        """Exhaustively search the top ten for the best feasible slate.

        Maximizes total net votes under the slate budget; ties go to the slate
        requesting fewer tokens, then to higher-ranked members. Returns ids in
        ranking order, or an empty list if no proposal has positive support.
        """
        found = self._periods.get_period(period_id)
        if found.is_err():
            return found
        period = found.unwrap()
        budget = self._periods.slate_budget(period)

        eligible = [
            (rank, self._state.proposals[pid])
            for rank, pid in enumerate(self._state.top_ten.get(period_id, []))
            if self._state.proposals[pid].net_funding_votes_received > 0
            and self._state.proposals[pid].tokens_requested <= budget
        ]

        best: tuple[int, int, tuple[int, ...]] | None = None
        best_members: tuple[tuple[int, Proposal], ...] = ()
        for size in range(1, len(eligible) + 1):
            for subset in combinations(eligible, size):
                tokens = sum(p.tokens_requested for _, p in subset)
                if tokens > budget:
                    continue
                # larger votes first, then fewer tokens, then lower ranks
                score = (
                    -total_net_votes([p for _, p in subset]),
                    tokens,
                    tuple(rank for rank, _ in subset),
                )
                if best is None or score < best:
                    best = score
                    best_members = subset
        return Ok([p.proposal_id for _, p in best_members])

    # --- Queries ---
    def winning_slate(self, period_id: int) -> Slate | None:
        return self._state.winning_slate(period_id)

    def slate_hash(self, period_id: int) -> str | None:
        period = self._state.periods.get(period_id)
        return period.winning_slate_hash if period is not None else None

    def funded_proposal_slate(self, slate_hash: str) -> list[str]:
        slate = self._state.slates.get(slate_hash)
        return list(slate.proposal_ids) if slate is not None else []


__all__ = ["SlateArbiter", "is_strictly_better", "total_net_votes"]
