"""Domain exceptions raised by the loyalty services.

Routes never catch these one by one: ``main.py`` registers a handler that turns
them into JSON responses.
"""


class LoyaltyError(RuntimeError):
    """Base exception for loyalty engine failures."""

    status_code = 500
    code = "LOYALTY_ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class NotFoundError(LoyaltyError):
    """Raised when an account, reward, challenge, promotion or redemption does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class BusinessRuleViolation(LoyaltyError):
    """A user-facing rejection. Never retried automatically."""

    status_code = 422
    code = "BUSINESS_RULE_VIOLATION"


class InsufficientBalance(BusinessRuleViolation):
    code = "INSUFFICIENT_BALANCE"

    def __init__(self, balance: int, requested: int) -> None:
        super().__init__(f"Insufficient points: balance {balance}, requested {requested}")
        self.balance = balance
        self.requested = requested


class GenerationConflictError(LoyaltyError):
    """Raised when a unique loyalty number or redemption code cannot be generated."""

    status_code = 503
    code = "GENERATION_CONFLICT"


class ConfigurationError(LoyaltyError):
    """Malformed tier, promotion or challenge configuration found during evaluation."""

    status_code = 500
    code = "CONFIGURATION_ERROR"
