from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

WAD = 10**18


class GrantFundSettings(BaseSettings):
    """Tunable constants of the grant fund engine.

    Lengths are expressed in abstract ticks, ratios as WAD fractions.
    """

    model_config = SettingsConfigDict(
        env_prefix="GRANTFUND_", env_file=".env", case_sensitive=False, extra="ignore"
    )

    distribution_period_length: int = Field(default=648_000, gt=0)
    funding_period_length: int = Field(default=72_000, gt=0)
    challenge_period_length: int = Field(default=50_400, gt=0)

    # 3% of the treasury is made available to every distribution period
    global_budget_constraint: int = Field(default=3 * WAD // 100, gt=0, le=WAD)
    slate_budget_ratio: int = Field(default=9 * WAD // 10, gt=0, le=WAD)
    delegate_reward_ratio: int = Field(default=WAD // 10, gt=0, le=WAD)
    max_request_ratio: int = Field(default=9 * WAD // 10, gt=0, le=WAD)

    top_proposals_limit: int = Field(default=10, gt=0)
    fund_token: str = Field(default="AJNA", min_length=1)
    max_description_length: int = Field(default=10_000, gt=0)

    @model_validator(mode="after")
    def _check_stage_lengths(self) -> "GrantFundSettings":
        if self.funding_period_length >= self.distribution_period_length:
            raise ValueError("funding_period_length must be shorter than the distribution period")
        if self.slate_budget_ratio + self.delegate_reward_ratio > WAD:
            raise ValueError("slate budget and delegate rewards cannot exceed the period budget")
        return self


@lru_cache(maxsize=1)
def get_settings() -> GrantFundSettings:
    return GrantFundSettings()
