"""
Error types raised by the Royalty Engine.

Calculation-layer fallbacks (missing rates, unknown territories) never raise;
these cover persistence and lifecycle failures only.
"""


class RoyaltyEngineError(Exception):
    """Base class for engine errors."""


class StatementNotFoundError(RoyaltyEngineError, LookupError):
    """No statement exists with the requested id."""

    def __init__(self, statement_id: str):
        super().__init__(f"Statement not found: {statement_id}")
        self.statement_id = statement_id


class AccountNotFoundError(RoyaltyEngineError, LookupError):
    """No recoupment account exists with the requested id."""

    def __init__(self, account_id: str):
        super().__init__(f"Recoupment account not found: {account_id}")
        self.account_id = account_id


class InvalidTransitionError(RoyaltyEngineError, ValueError):
    """A statement status change is not allowed from its current status."""

    def __init__(self, statement_id: str, current: str, target: str):
        super().__init__(f"Cannot move statement {statement_id} from '{current}' to '{target}'")
        self.statement_id = statement_id
        self.current = current
        self.target = target


class DuplicateStatementError(RoyaltyEngineError, ValueError):
    """A non-draft statement already exists for the same user and period."""


class StatementTooLargeError(RoyaltyEngineError, ValueError):
    """The revenue-event scan for a period exceeded the configured bound."""
