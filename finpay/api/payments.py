"""
Balance, history and payment endpoints
"""

from fastapi import APIRouter, Depends

from .auth import get_current_user, get_ledger_service
from .schemas import PayRequest, serialize_transaction
from ..errors import MissingFields
from ..ledger import LedgerService


router = APIRouter()


@router.get("/balance")
async def get_balance(
    username: str = Depends(get_current_user),
    ledger: LedgerService = Depends(get_ledger_service)
):
    """Current balance of the caller"""
    return {"balance": ledger.get_balance(username)}


@router.get("/transactions")
async def get_transactions(
    username: str = Depends(get_current_user),
    ledger: LedgerService = Depends(get_ledger_service)
):
    """Transactions sent or received by the caller, newest first"""
    return [serialize_transaction(txn) for txn in ledger.get_transactions(username)]


@router.post("/pay")
async def pay(
    request: PayRequest,
    username: str = Depends(get_current_user),
    ledger: LedgerService = Depends(get_ledger_service)
):
    """Send money to another user"""
    if not request.to or request.amount is None:
        raise MissingFields("Recipient and amount required")
    
    result = ledger.transfer(username, request.to, request.amount)
    return {
        "message": "Payment successful",
        "transaction": serialize_transaction(result.transaction),
        "newBalance": result.new_balance
    }
