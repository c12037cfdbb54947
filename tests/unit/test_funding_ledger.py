from __future__ import annotations

from typing import Callable

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from src.grantfund.clock import ManualClock
from src.grantfund.errors import (
    FundingVoteWrongDirectionError,
    InsufficientVotingPowerError,
    InvalidVoteError,
    WrongStageError,
)
from src.grantfund.maths import WAD, wad
from src.grantfund.models import (
    DistributionPeriod,
    FundingVote,
    FundingVoteParams,
    FundingVoterInfo,
    Proposal,
)
from src.grantfund.services.funding_ledger import FundingLedger
from src.grantfund.services.grant_fund_service import GrantFundService
from src.infra.result import Err, Ok
from tests.fixtures.grant_fund import fund, screen, to_funding

VOTER = "0xdelegate"


@pytest.fixture
def ranked(
    service: GrantFundService,
    clock: ManualClock,
    funded_period: DistributionPeriod,
    make_proposal: Callable[..., Proposal],
    give_power: Callable[[str, int], None],
) -> list[Proposal]:
    """Three screened proposals plus one unscreened, clock moved to funding."""
    a, b, c, unranked = (make_proposal(1_000 * (i + 1)) for i in range(4))
    give_power(VOTER, 100)
    screen(service, VOTER, (a.proposal_id, 50), (b.proposal_id, 30), (c.proposal_id, 20))
    to_funding(clock, funded_period)
    return [a, b, c, unranked]


def _net(service: GrantFundService, proposal: Proposal) -> int:
    return service.get_proposal(proposal.proposal_id).unwrap().net_funding_votes_received


@pytest.mark.unit
def test_quadratic_budget_is_power_squared(
    service: GrantFundService, ranked: list[Proposal]
) -> None:
    a, b, *_ = ranked
    assert fund(service, VOTER, (a.proposal_id, 60)) == wad(6_400)
    assert fund(service, VOTER, (b.proposal_id, -80)) == 0

    assert _net(service, a) == wad(60)
    assert _net(service, b) == -wad(80)
    assert service.get_period(1).unwrap().funding_votes_cast == wad(10_000)
    assert service.funding_votes_cast(period_id=1, voter=VOTER) == [
        FundingVote(voter=VOTER, proposal_id=a.proposal_id, votes_used=wad(60)),
        FundingVote(voter=VOTER, proposal_id=b.proposal_id, votes_used=-wad(80)),
    ]
    assert service.voter_info(period_id=1, voter=VOTER) == Ok(
        FundingVoterInfo(
            voter=VOTER,
            period_id=1,
            funding_power=wad(10_000),
            budget_remaining=0,
            votes_cast=2,
        )
    )


@pytest.mark.unit
def test_over_budget_call_changes_nothing(
    service: GrantFundService, ranked: list[Proposal]
) -> None:
    a, b, *_ = ranked
    fund(service, VOTER, (a.proposal_id, 10))
    result = service.funding.funding_vote(
        voter=VOTER,
        votes=[
            FundingVoteParams(proposal_id=a.proposal_id, votes_used=wad(50)),
            FundingVoteParams(proposal_id=b.proposal_id, votes_used=wad(81)),
        ],
    )
    assert isinstance(result, Err)
    assert isinstance(result.error, InsufficientVotingPowerError)
    assert _net(service, a) == wad(10)
    assert _net(service, b) == 0
    assert service.funding.voter_cost(1, VOTER) == wad(100)
    assert service.get_period(1).unwrap().funding_votes_cast == wad(100)


@pytest.mark.unit
def test_direction_is_locked_after_first_vote(
    service: GrantFundService, ranked: list[Proposal]
) -> None:
    a, b, *_ = ranked
    fund(service, VOTER, (a.proposal_id, 10), (b.proposal_id, -10))

    for pid, votes in ((a.proposal_id, -10), (a.proposal_id, -25), (b.proposal_id, 10)):
        result = service.funding.funding_vote(
            voter=VOTER, votes=[FundingVoteParams(proposal_id=pid, votes_used=wad(votes))]
        )
        assert isinstance(result, Err)
        assert isinstance(result.error, FundingVoteWrongDirectionError)

    # moving towards zero without crossing it is allowed
    fund(service, VOTER, (a.proposal_id, -5), (b.proposal_id, 3))
    assert _net(service, a) == wad(5)
    assert _net(service, b) == -wad(7)


@pytest.mark.unit
def test_direction_checked_across_entries_of_one_call(
    service: GrantFundService, ranked: list[Proposal]
) -> None:
    a, *_ = ranked
    result = service.funding.funding_vote(
        voter=VOTER,
        votes=[
            FundingVoteParams(proposal_id=a.proposal_id, votes_used=wad(5)),
            FundingVoteParams(proposal_id=a.proposal_id, votes_used=-wad(6)),
        ],
    )
    assert isinstance(result, Err)
    assert isinstance(result.error, FundingVoteWrongDirectionError)
    assert service.funding_votes_cast(period_id=1, voter=VOTER) == []


@pytest.mark.unit
def test_repeated_entries_accumulate(service: GrantFundService, ranked: list[Proposal]) -> None:
    a, *_ = ranked
    remaining = fund(service, VOTER, (a.proposal_id, 30), (a.proposal_id, 30))
    assert remaining == wad(10_000 - 3_600)
    assert service.funding.voter_cost(1, VOTER) == wad(3_600)


@pytest.mark.unit
def test_cost_is_recomputed_from_accumulated_votes(
    service: GrantFundService, ranked: list[Proposal]
) -> None:
    a, *_ = ranked
    for _ in range(7):
        fund(service, VOTER, (a.proposal_id, 10))
    # (70)^2, not 7 * (10)^2
    assert service.funding.voter_cost(1, VOTER) == wad(4_900)


@pytest.mark.unit
def test_only_top_ten_proposals_are_eligible(
    service: GrantFundService, ranked: list[Proposal]
) -> None:
    unranked = ranked[3]
    result = service.funding.funding_vote(
        voter=VOTER, votes=[FundingVoteParams(proposal_id=unranked.proposal_id, votes_used=wad(1))]
    )
    assert isinstance(result, Err)
    assert isinstance(result.error, InvalidVoteError)


@pytest.mark.unit
def test_zero_and_empty_votes_are_invalid(
    service: GrantFundService, ranked: list[Proposal]
) -> None:
    a, *_ = ranked
    zero = service.funding.funding_vote(
        voter=VOTER, votes=[FundingVoteParams(proposal_id=a.proposal_id, votes_used=0)]
    )
    empty = service.funding.funding_vote(voter=VOTER, votes=[])
    assert isinstance(zero, Err) and isinstance(zero.error, InvalidVoteError)
    assert isinstance(empty, Err) and isinstance(empty.error, InvalidVoteError)


@pytest.mark.unit
def test_funding_vote_outside_funding_stage(
    service: GrantFundService,
    clock: ManualClock,
    funded_period: DistributionPeriod,
    ranked: list[Proposal],
) -> None:
    a, *_ = ranked
    clock.set(funded_period.end_tick)
    result = service.funding.funding_vote(
        voter=VOTER, votes=[FundingVoteParams(proposal_id=a.proposal_id, votes_used=wad(1))]
    )
    assert isinstance(result, Err)
    assert isinstance(result.error, WrongStageError)


@pytest.mark.unit
def test_funding_vote_during_screening(
    service: GrantFundService,
    funded_period: DistributionPeriod,
    make_proposal: Callable[..., Proposal],
    give_power: Callable[[str, int], None],
) -> None:
    a = make_proposal(1_000)
    give_power(VOTER, 10)
    screen(service, VOTER, (a.proposal_id, 10))
    result = service.funding.funding_vote(
        voter=VOTER, votes=[FundingVoteParams(proposal_id=a.proposal_id, votes_used=wad(1))]
    )
    assert isinstance(result, Err)
    assert isinstance(result.error, WrongStageError)


@pytest.mark.unit
def test_funding_power_votes_floor() -> None:
    assert FundingLedger.get_funding_power_votes(wad(6_400)) == wad(80)
    assert FundingLedger.get_funding_power_votes(0) == 0
    assert FundingLedger.get_funding_power_votes(-1) == 0
    votes = FundingLedger.get_funding_power_votes(wad(2))
    assert votes == 1_414_213_562_373_095_048
    assert votes * votes <= wad(2) * WAD


@pytest.mark.unit
def test_remaining_power_votes_are_castable(
    service: GrantFundService, ranked: list[Proposal]
) -> None:
    a, b, *_ = ranked
    remaining = fund(service, VOTER, (a.proposal_id, 33))
    extra = service.get_funding_power_votes(remaining)
    result = service.funding.funding_vote(
        voter=VOTER, votes=[FundingVoteParams(proposal_id=b.proposal_id, votes_used=extra)]
    )
    assert isinstance(result, Ok)


@given(
    calls=st.lists(
        st.lists(
            st.tuples(
                st.integers(min_value=0, max_value=2),
                st.integers(min_value=-60, max_value=60).filter(lambda v: v != 0),
            ),
            min_size=1,
            max_size=3,
        ),
        max_size=15,
    )
)
@settings(max_examples=60, suppress_health_check=[HealthCheck.function_scoped_fixture])
@pytest.mark.unit
def test_quadratic_budget_and_direction_property(
    service: GrantFundService,
    ranked: list[Proposal],
    give_power: Callable[[str, int], None],
    calls: list[list[tuple[int, int]]],
) -> None:
    """Property: Σ votes² ≤ power² after every call and no vote ever changes sign."""
    voter = f"0xprop{len(service.state.funding_votes)}-{len(calls)}"
    give_power(voter, 100)
    ids = [p.proposal_id for p in ranked[:3]]
    directions: dict[str, int] = {}

    for call in calls:
        votes = [FundingVoteParams(proposal_id=ids[i], votes_used=wad(v)) for i, v in call]
        before = dict(service.state.proposals)
        result = service.funding.funding_vote(voter=voter, votes=votes)
        if isinstance(result, Err):
            assert service.state.proposals == before

        cast = service.funding_votes_cast(period_id=1, voter=voter)
        assert sum(v.votes_used**2 for v in cast) <= wad(100) ** 2
        for vote in cast:
            assert vote.direction != 0
            assert directions.setdefault(vote.proposal_id, vote.direction) == vote.direction
