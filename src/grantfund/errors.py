"""Grant fund specific error types."""

from __future__ import annotations

from enum import Enum
from typing import Any

from src.infra.result import BusinessLogicError, Error, SystemError, ValidationError


class GrantFundErrorCode(str, Enum):
    """撥款基金操作錯誤代碼。

    命名規則: GRANT_<CATEGORY>_<DETAIL>
    - STAGE: 操作不在有效階段內
    - BUDGET: 投票權不足
    - INTEGRITY: 提案 / 名單格式或重複錯誤
    - DIRECTION: 鎖定的投票方向被翻轉
    - LIFECYCLE: 重複執行或重複領取
    """

    GRANT_STAGE_WRONG_STAGE = "GRANT_STAGE_WRONG_STAGE"
    GRANT_STAGE_SCREENING_ENDED = "GRANT_STAGE_SCREENING_ENDED"
    GRANT_STAGE_PERIOD_STILL_ACTIVE = "GRANT_STAGE_PERIOD_STILL_ACTIVE"

    GRANT_BUDGET_INSUFFICIENT_VOTING_POWER = "GRANT_BUDGET_INSUFFICIENT_VOTING_POWER"

    GRANT_INTEGRITY_INVALID_AMOUNT = "GRANT_INTEGRITY_INVALID_AMOUNT"
    GRANT_INTEGRITY_INVALID_VOTE = "GRANT_INTEGRITY_INVALID_VOTE"
    GRANT_INTEGRITY_INVALID_PROPOSAL = "GRANT_INTEGRITY_INVALID_PROPOSAL"
    GRANT_INTEGRITY_PROPOSAL_NOT_FOUND = "GRANT_INTEGRITY_PROPOSAL_NOT_FOUND"
    GRANT_INTEGRITY_PROPOSAL_EXISTS = "GRANT_INTEGRITY_PROPOSAL_EXISTS"
    GRANT_INTEGRITY_INVALID_SLATE = "GRANT_INTEGRITY_INVALID_SLATE"
    GRANT_INTEGRITY_PERIOD_NOT_FOUND = "GRANT_INTEGRITY_PERIOD_NOT_FOUND"

    GRANT_DIRECTION_WRONG_DIRECTION = "GRANT_DIRECTION_WRONG_DIRECTION"

    GRANT_LIFECYCLE_EXECUTE_INVALID = "GRANT_LIFECYCLE_EXECUTE_INVALID"
    GRANT_LIFECYCLE_REENTRANT_CALL = "GRANT_LIFECYCLE_REENTRANT_CALL"
    GRANT_LIFECYCLE_NOT_SUCCESSFUL = "GRANT_LIFECYCLE_NOT_SUCCESSFUL"
    GRANT_LIFECYCLE_EXECUTION_FAILED = "GRANT_LIFECYCLE_EXECUTION_FAILED"
    GRANT_LIFECYCLE_REWARD_CLAIMED = "GRANT_LIFECYCLE_REWARD_CLAIMED"
    GRANT_LIFECYCLE_REWARD_INVALID = "GRANT_LIFECYCLE_REWARD_INVALID"

    GRANT_UNKNOWN_ERROR = "GRANT_UNKNOWN_ERROR"


class GrantFundError(Error):
    """撥款基金操作的基礎錯誤類型。"""

    error_code: GrantFundErrorCode = GrantFundErrorCode.GRANT_UNKNOWN_ERROR
    default_message: str = "Grant fund operation failed."

    def __init__(
        self,
        message: str | None = None,
        *,
        error_code: GrantFundErrorCode | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message or self.default_message, **kwargs)
        if error_code is not None:
            self.error_code = error_code


# --- stage errors ---


class WrongStageError(GrantFundError):
    error_code = GrantFundErrorCode.GRANT_STAGE_WRONG_STAGE
    default_message = "Operation is not allowed in the current stage."


class PeriodStillActiveError(WrongStageError):
    error_code = GrantFundErrorCode.GRANT_STAGE_PERIOD_STILL_ACTIVE
    default_message = "The current distribution period has not ended."


class PeriodNotFoundError(GrantFundError, ValidationError):
    error_code = GrantFundErrorCode.GRANT_INTEGRITY_PERIOD_NOT_FOUND
    default_message = "Distribution period does not exist."


# --- budget errors ---


class InsufficientVotingPowerError(GrantFundError, BusinessLogicError):
    error_code = GrantFundErrorCode.GRANT_BUDGET_INSUFFICIENT_VOTING_POWER
    default_message = "Voter does not have enough voting power."


# --- integrity errors ---


class InvalidAmountError(GrantFundError, ValidationError):
    error_code = GrantFundErrorCode.GRANT_INTEGRITY_INVALID_AMOUNT
    default_message = "Amount must be a positive integer."


class InvalidVoteError(GrantFundError, ValidationError):
    error_code = GrantFundErrorCode.GRANT_INTEGRITY_INVALID_VOTE
    default_message = "Vote is not valid."


class ScreeningPeriodEndedError(WrongStageError, InvalidVoteError):
    """Screening stage is over; both a stage error and an invalid vote."""

    error_code = GrantFundErrorCode.GRANT_STAGE_SCREENING_ENDED
    default_message = "The screening stage of this period has ended."


class InvalidProposalError(GrantFundError, ValidationError):
    error_code = GrantFundErrorCode.GRANT_INTEGRITY_INVALID_PROPOSAL
    default_message = "Proposal is not valid."


class ProposalNotFoundError(InvalidProposalError):
    error_code = GrantFundErrorCode.GRANT_INTEGRITY_PROPOSAL_NOT_FOUND
    default_message = "Proposal does not exist."


class ProposalAlreadyExistsError(GrantFundError, ValidationError):
    error_code = GrantFundErrorCode.GRANT_INTEGRITY_PROPOSAL_EXISTS
    default_message = "Proposal has already been submitted."


class InvalidProposalSlateError(GrantFundError, ValidationError):
    error_code = GrantFundErrorCode.GRANT_INTEGRITY_INVALID_SLATE
    default_message = "Proposal slate is not valid."


# --- direction errors ---


class FundingVoteWrongDirectionError(GrantFundError, BusinessLogicError):
    error_code = GrantFundErrorCode.GRANT_DIRECTION_WRONG_DIRECTION
    default_message = "Funding votes cannot change direction."


# --- lifecycle errors ---


class ExecuteProposalInvalidError(GrantFundError, BusinessLogicError):
    error_code = GrantFundErrorCode.GRANT_LIFECYCLE_EXECUTE_INVALID
    default_message = "Proposal cannot be executed."


class ReentrantCallError(ExecuteProposalInvalidError):
    """執行器在提案執行期間回呼引擎時回傳。"""

    error_code = GrantFundErrorCode.GRANT_LIFECYCLE_REENTRANT_CALL
    default_message = "The engine cannot be called while a proposal is executing."


class ProposalNotSuccessfulError(GrantFundError, BusinessLogicError):
    error_code = GrantFundErrorCode.GRANT_LIFECYCLE_NOT_SUCCESSFUL
    default_message = "Proposal is not part of the winning slate."


class ExecutionFailedError(GrantFundError, SystemError):
    """當外部執行器拒絕或拋出例外時回傳。"""

    error_code = GrantFundErrorCode.GRANT_LIFECYCLE_EXECUTION_FAILED
    default_message = "Proposal execution failed."


class RewardAlreadyClaimedError(GrantFundError, BusinessLogicError):
    error_code = GrantFundErrorCode.GRANT_LIFECYCLE_REWARD_CLAIMED
    default_message = "Delegate reward has already been claimed."


class DelegateRewardInvalidError(GrantFundError, BusinessLogicError):
    error_code = GrantFundErrorCode.GRANT_LIFECYCLE_REWARD_INVALID
    default_message = "Voter is not eligible for a delegate reward."


__all__ = [
    "GrantFundErrorCode",
    "GrantFundError",
    "WrongStageError",
    "PeriodStillActiveError",
    "PeriodNotFoundError",
    "ScreeningPeriodEndedError",
    "InsufficientVotingPowerError",
    "InvalidAmountError",
    "InvalidVoteError",
    "InvalidProposalError",
    "ProposalNotFoundError",
    "ProposalAlreadyExistsError",
    "InvalidProposalSlateError",
    "FundingVoteWrongDirectionError",
    "ExecuteProposalInvalidError",
    "ReentrantCallError",
    "ProposalNotSuccessfulError",
    "ExecutionFailedError",
    "RewardAlreadyClaimedError",
    "DelegateRewardInvalidError",
]
