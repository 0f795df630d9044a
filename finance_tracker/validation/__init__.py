from finance_tracker.validation.validator import (
    GoalValidator,
    TransactionValidator,
    ValidationFailedError,
    get_user_friendly_summary,
)

__all__ = [
    "GoalValidator",
    "TransactionValidator",
    "ValidationFailedError",
    "get_user_friendly_summary",
]
