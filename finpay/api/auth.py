"""
Authentication dependencies
"""

from typing import Optional
from fastapi import Depends, Header, Request

from ..errors import InvalidToken
from ..ledger import LedgerService
from ..logging_config import get_logger, log_action


logger = get_logger("finpay.api.auth")


def get_ledger_service(request: Request) -> LedgerService:
    """The ledger instance the application was created with"""
    return request.app.state.ledger


def extract_token(authorization: Optional[str]) -> Optional[str]:
    """Accept both a bare token and 'Bearer <token>'"""
    if not authorization:
        return None
    value = authorization.strip()
    if value.lower().startswith("bearer "):
        value = value[7:].strip()
    return value or None


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    ledger: LedgerService = Depends(get_ledger_service)
) -> str:
    """Dependency that validates the bearer token and returns the username"""
    token = extract_token(authorization)
    if not token:
        raise InvalidToken("Access token required")
    try:
        return ledger.identify(token)
    except InvalidToken as e:
        log_action(logger, "warning", f"Token rejected: {e.message}",
                   action="verify_token", resource="auth")
        raise
