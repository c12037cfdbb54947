from __future__ import annotations

from typing import Callable

import pytest
from faker import Faker

from src.config.settings import GrantFundSettings
from src.grantfund.clock import ManualClock
from src.grantfund.interfaces import RecordingActionExecutor, SnapshotVotingPowerOracle
from src.grantfund.maths import wad
from src.grantfund.models import DistributionPeriod, Proposal, TransferAction
from src.grantfund.services.grant_fund_service import GrantFundService
from src.infra.result import reset_error_metrics
from tests.fixtures.grant_fund import (
    CHALLENGE_LENGTH,
    FUNDING_LENGTH,
    PERIOD_LENGTH,
    START_TICK,
)


@pytest.fixture(autouse=True)
def _reset_error_metrics() -> None:
    reset_error_metrics()


@pytest.fixture
def faker() -> Faker:
    """Provide a Faker instance for account addresses and descriptions."""
    return Faker("en_US")


@pytest.fixture
def settings() -> GrantFundSettings:
    return GrantFundSettings(
        distribution_period_length=PERIOD_LENGTH,
        funding_period_length=FUNDING_LENGTH,
        challenge_period_length=CHALLENGE_LENGTH,
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(START_TICK)


@pytest.fixture
def oracle() -> SnapshotVotingPowerOracle:
    return SnapshotVotingPowerOracle()


@pytest.fixture
def action_executor() -> RecordingActionExecutor:
    return RecordingActionExecutor()


@pytest.fixture
def service(
    settings: GrantFundSettings,
    clock: ManualClock,
    oracle: SnapshotVotingPowerOracle,
    action_executor: RecordingActionExecutor,
) -> GrantFundService:
    return GrantFundService(
        oracle=oracle, executor=action_executor, clock=clock, settings=settings
    )


@pytest.fixture
def funded_period(service: GrantFundService) -> DistributionPeriod:
    """A period opened over a 500M treasury, so its GBC is 15M."""
    service.periods.fund_treasury(wad(500_000_000)).unwrap()
    return service.periods.start_new_distribution_period().unwrap()


@pytest.fixture
def make_proposal(service: GrantFundService, faker: Faker) -> Callable[..., Proposal]:
    """Create a proposal in the current period requesting ``tokens`` whole tokens."""

    def _make(tokens: int | float, description: str | None = None) -> Proposal:
        action = TransferAction(
            token="AJNA",
            recipient=faker.hexify(text="0x" + "^" * 40),
            amount=int(tokens * 10**6) * 10**12,
        )
        text = description if description is not None else faker.sentence(nb_words=10)
        return service.screening.propose(
            proposer=faker.hexify(text="0x" + "^" * 40), actions=[action], description=text
        ).unwrap()

    return _make


@pytest.fixture
def give_power(oracle: SnapshotVotingPowerOracle) -> Callable[[str, int], None]:
    """Checkpoint whole-token voting power effective from tick 0."""

    def _give(account: str, tokens: int) -> None:
        oracle.checkpoint(account, 0, wad(tokens))

    return _give
