"""WAD fixed-point helpers.

Every monetary and voting quantity is an integer scaled by ``10**18``. Products
and quotients round toward zero for non-negative operands, matching the floor
semantics the reward and budget rules depend on.
"""

from __future__ import annotations

import math

WAD = 10**18


def wad(value: int | str) -> int:
    """Scale a whole-token amount to WAD, e.g. ``wad(15_000_000)``."""
    return int(value) * WAD


def wmul(x: int, y: int) -> int:
    return x * y // WAD


def wdiv(x: int, y: int) -> int:
    return x * WAD // y


def wsquare(x: int) -> int:
    """Square of a (possibly signed) WAD amount, in WAD."""
    return x * x // WAD


def wsqrt(x: int) -> int:
    """Floor square root of a non-negative WAD amount, in WAD.

    ``wsqrt(y) ** 2 <= y * WAD`` always holds, so it never overstates.
    """
    if x < 0:
        raise ValueError("square root of a negative amount")
    return math.isqrt(x * WAD)


def sign(x: int) -> int:
    return (x > 0) - (x < 0)


def ratio_of(amount: int, ratio: int) -> int:
    """``amount * ratio`` where ``ratio`` is a WAD fraction (0.03e18 is 3%)."""
    return amount * ratio // WAD


__all__ = ["WAD", "wad", "wmul", "wdiv", "wsquare", "wsqrt", "sign", "ratio_of"]
