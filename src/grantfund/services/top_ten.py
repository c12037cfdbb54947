"""Bounded, exactly sorted ranking of the best screened proposals.

The ranking holds at most ``limit`` proposal ids ordered by screening votes,
highest first; equal tallies keep submission order (earlier submission ranks
higher). Tallies only ever grow, so re-ranking the proposal that just received
votes is enough to keep the list exact.
"""

from __future__ import annotations

from typing import Callable, Mapping

from src.grantfund.models import Proposal

RankKey = tuple[int, int]


def rank_key(proposal: Proposal) -> RankKey:
    return (-proposal.screening_votes_received, proposal.submission_index)


def rerank(
    ranking: list[str],
    proposal_id: str,
    proposals: Mapping[str, Proposal],
    *,
    limit: int,
    key: Callable[[Proposal], RankKey] = rank_key,
) -> bool:
    """Place ``proposal_id`` at its exact position in ``ranking``, in place.

    Returns ``True`` if the proposal is ranked afterwards. A proposal outside a
    full ranking only enters by displacing the last entry.
    """
    candidate = proposals[proposal_id]
    if candidate.screening_votes_received <= 0:
        return proposal_id in ranking

    if proposal_id in ranking:
        idx = ranking.index(proposal_id)
    elif len(ranking) < limit:
        ranking.append(proposal_id)
        idx = len(ranking) - 1
    else:
        last = proposals[ranking[-1]]
        if key(candidate) >= key(last):
            return False
        ranking[-1] = proposal_id
        idx = len(ranking) - 1

    # linear bubble towards the head; the list never exceeds ``limit``
    while idx > 0 and key(candidate) < key(proposals[ranking[idx - 1]]):
        ranking[idx - 1], ranking[idx] = ranking[idx], ranking[idx - 1]
        idx -= 1
    return True


__all__ = ["rank_key", "rerank"]
