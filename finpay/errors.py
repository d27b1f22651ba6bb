"""
Ledger Error Taxonomy

Every failure the ledger reports to a caller is one of these. They derive
from ValueError so callers that only care about "bad input" can catch that.
"""

from decimal import Decimal
from typing import Optional


class LedgerError(ValueError):
    """Base class for recoverable ledger failures"""

    code: str = "ledger_error"
    default_message: str = "Ledger operation failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class MissingFields(LedgerError):
    code = "missing_fields"
    default_message = "Required fields missing"


class DuplicateAccount(LedgerError):
    code = "duplicate_account"
    default_message = "Username already exists"

    def __init__(self, username: str):
        self.username = username
        super().__init__()


class InvalidCredentials(LedgerError):
    """Unknown user or wrong secret; the two are deliberately indistinguishable"""
    code = "invalid_credentials"
    default_message = "Invalid credentials"


class InvalidToken(LedgerError):
    code = "invalid_token"
    default_message = "Invalid token"


class SelfTransfer(LedgerError):
    code = "self_transfer"
    default_message = "Cannot send money to yourself"


class InvalidAmount(LedgerError):
    code = "invalid_amount"
    default_message = "Amount must be positive"


class RecipientNotFound(LedgerError):
    code = "recipient_not_found"
    default_message = "Recipient not found"

    def __init__(self, username: str):
        self.username = username
        super().__init__()


class InsufficientFunds(LedgerError):
    code = "insufficient_funds"

    def __init__(self, username: str, balance: Decimal):
        self.username = username
        self.balance = balance
        super().__init__(f"Insufficient balance ({balance})")


class AccountNotFound(LedgerError):
    code = "not_found"
    default_message = "User not found"

    def __init__(self, username: str):
        self.username = username
        super().__init__()
