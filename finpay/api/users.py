"""
Registration and login endpoints
"""

from fastapi import APIRouter, Depends, status

from .auth import get_ledger_service
from .schemas import RegisterRequest, LoginRequest
from ..ledger import LedgerService


router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    ledger: LedgerService = Depends(get_ledger_service)
):
    """Create an account with the starting balance"""
    username = ledger.register_account(request.username, request.password)
    return {"message": "User created", "username": username}


@router.post("/login")
async def login(
    request: LoginRequest,
    ledger: LedgerService = Depends(get_ledger_service)
):
    """Authenticate and return a bearer token"""
    session = ledger.authenticate(request.username, request.password)
    return {
        "token": session.token,
        "username": session.username,
        "balance": session.balance
    }
