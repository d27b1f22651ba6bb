"""
Request models and response serializers for the HTTP API
"""

from decimal import Decimal
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from ..transactions import Transaction


class CredentialsRequest(BaseModel):
    # Optional so that absent fields reach the ledger and fail as MissingFields
    username: Optional[str] = None
    password: Optional[str] = None


class RegisterRequest(CredentialsRequest):
    pass


class LoginRequest(CredentialsRequest):
    pass


class PayRequest(BaseModel):
    to: Optional[str] = Field(None, description="Recipient username")
    amount: Optional[Decimal] = Field(None, description="Amount to send")


def serialize_transaction(transaction: Transaction) -> Dict[str, Any]:
    """Transaction as the API presents it; amounts stay Decimal and render as JSON numbers"""
    return {
        "id": transaction.id,
        "from": transaction.from_user,
        "to": transaction.to_user,
        "amount": transaction.amount,
        "timestamp": transaction.timestamp.isoformat(),
        "type": transaction.kind.value,
    }
