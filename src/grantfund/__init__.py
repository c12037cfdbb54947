"""Quadratic participatory-budgeting grant fund engine."""

# 將門面服務提升至封包層級
from .services.grant_fund_service import GrantFundService  # noqa: F401

__all__ = ["GrantFundService"]
