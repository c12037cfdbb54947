"""Components of the grant fund engine.

將各元件子模組提升到套件層級，以符合 `__all__`。
"""

from . import funding_ledger as funding_ledger  # noqa: F401
from . import period_manager as period_manager  # noqa: F401
from . import proposal_executor as proposal_executor  # noqa: F401
from . import reward_distributor as reward_distributor  # noqa: F401
from . import screening_ledger as screening_ledger  # noqa: F401
from . import slate_arbiter as slate_arbiter  # noqa: F401
from . import top_ten as top_ten  # noqa: F401

__all__ = [
    "period_manager",
    "screening_ledger",
    "funding_ledger",
    "slate_arbiter",
    "top_ten",
    "proposal_executor",
    "reward_distributor",
]
