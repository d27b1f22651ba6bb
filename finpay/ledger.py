"""
Ledger Service Module

The authoritative ledger: registration, authentication and transfers, kept
consistent across the account store and the transaction log.

A transfer validates its input, then takes both account locks (in username
order) for the balance check, the debit, the credit and the log append.
Nothing outside those locks can observe a half-applied transfer.
"""

from decimal import Decimal, InvalidOperation
from datetime import datetime, timezone, timedelta
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .accounts import AccountStore
from .config import FinPayConfig, get_config
from .credentials import PasswordHasher
from .errors import (
    LedgerError, MissingFields, DuplicateAccount, InvalidCredentials,
    SelfTransfer, InvalidAmount, RecipientNotFound, InsufficientFunds,
    AccountNotFound
)
from .logging_config import get_logger, log_action
from .storage import InMemoryStorage, StorageInterface
from .tokens import JWTTokenIssuer, TokenIssuer
from .transactions import SYSTEM_SENDER, Transaction, TransactionKind, TransactionLog


DEMO_ACCOUNTS = (
    ("alice", Decimal("1000")),
    ("bob", Decimal("1500")),
)
DEMO_SEED_TIMESTAMP = datetime(2025, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
AMOUNT_DECIMAL_PLACES = 2


@dataclass(frozen=True)
class Session:
    """Result of a successful login"""
    token: str
    username: str
    balance: Decimal


@dataclass(frozen=True)
class TransferResult:
    transaction: Transaction
    new_balance: Decimal


@dataclass(frozen=True)
class LedgerSnapshot:
    """Balances and credited total read while the whole ledger was frozen"""
    balances: Dict[str, Decimal]
    total_credited: Decimal
    transaction_count: int
    
    @property
    def total_balance(self) -> Decimal:
        return sum(self.balances.values(), Decimal("0"))
    
    @property
    def is_conserved(self) -> bool:
        return self.total_balance == self.total_credited
    
    @property
    def has_negative_balance(self) -> bool:
        return any(balance < 0 for balance in self.balances.values())


def decimal_places(amount: Decimal) -> int:
    """Significant digits after the point, ignoring trailing zeros"""
    _, digits, exponent = amount.as_tuple()
    while exponent < 0 and len(digits) > 1 and digits[-1] == 0:
        digits = digits[:-1]
        exponent += 1
    return max(-exponent, 0)


def parse_amount(value: Any) -> Decimal:
    """Coerce a caller-supplied amount to a strictly positive Decimal of at most two decimal places"""
    if isinstance(value, bool):
        raise InvalidAmount()
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidAmount("Amount must be a number")
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmount()
    if decimal_places(amount) > AMOUNT_DECIMAL_PLACES:
        raise InvalidAmount(f"Amount supports at most {AMOUNT_DECIMAL_PLACES} decimal places")
    return amount


class LedgerService:
    """
    Register, authenticate, transfer and query on one set of accounts
    """
    
    def __init__(
        self,
        accounts: AccountStore,
        transactions: TransactionLog,
        hasher: PasswordHasher,
        token_issuer: TokenIssuer
    ):
        self.accounts = accounts
        self.transactions = transactions
        self.hasher = hasher
        self.token_issuer = token_issuer
        self.logger = get_logger("finpay.ledger")
    
    # Accounts
    
    def register_account(self, username: Optional[str], password: Optional[str]) -> str:
        """
        Create an account with the starting grant and record the grant
        
        Returns:
            The new username
            
        Raises:
            MissingFields: username or password empty
            DuplicateAccount: username taken
        """
        if not username or not password:
            raise MissingFields("Username and password required")
        if self.accounts.exists(username):
            raise DuplicateAccount(username)
        
        credential_hash = self.hasher.hash(password)
        
        # Account and its grant appear together to anyone taking a snapshot
        with self.accounts.creation_lock:
            account = self.accounts.create(username, credential_hash)
            if account.balance > 0:
                self.transactions.append(SYSTEM_SENDER, username, account.balance, TransactionKind.CREDIT)
        
        log_action(
            self.logger, "info", "Account registered",
            user_id=username, action="register", resource="account",
            extra={"starting_balance": str(account.balance)}
        )
        return username
    
    def authenticate(self, username: Optional[str], password: Optional[str]) -> Session:
        """
        Verify credentials and issue a session token
        
        Unknown usernames and wrong passwords fail identically, including
        the hashing work done.
        """
        if not username or not password:
            raise MissingFields("Username and password required")
        
        account = self.accounts.lookup(username)
        if account is None:
            verified = self.hasher.verify_missing(password)
        else:
            verified = self.hasher.verify(password, account.credential_hash)
        
        if not verified:
            log_action(
                self.logger, "warning", "Authentication failed",
                action="login_failed", resource="auth",
                extra={"username": username}
            )
            raise InvalidCredentials()
        
        token = self.token_issuer.issue(username)
        log_action(
            self.logger, "info", "User authenticated successfully",
            user_id=username, action="login", resource="auth"
        )
        # Balance read under the account lock, never mid-transfer
        return Session(token=token, username=username, balance=self.get_balance(username))
    
    def identify(self, token: Optional[str]) -> str:
        """Resolve a bearer token to the username it was issued to"""
        return self.token_issuer.verify(token)
    
    # Transfers
    
    def transfer(self, from_user: str, to_user: Optional[str], amount: Any) -> TransferResult:
        """
        Move funds from one account to another, all or nothing
        
        Args:
            from_user: Authenticated sender
            to_user: Recipient username
            amount: Strictly positive amount
            
        Returns:
            TransferResult with the recorded transaction and the sender's new balance
        """
        try:
            result = self._transfer(from_user, to_user, amount)
        except LedgerError as e:
            level = "error" if isinstance(e, AccountNotFound) else "warning"
            log_action(
                self.logger, level, f"Transfer rejected: {e.message}",
                user_id=from_user, action="transfer_rejected", resource="transfer",
                extra={"to": to_user, "amount": str(amount), "code": e.code}
            )
            raise
        
        log_action(
            self.logger, "info", "Transfer completed",
            user_id=from_user, action="transfer", resource="transfer",
            extra={
                "transaction_id": result.transaction.id,
                "to": to_user,
                "amount": str(result.transaction.amount)
            }
        )
        return result
    
    def _transfer(self, from_user: str, to_user: Optional[str], amount: Any) -> TransferResult:
        amount = parse_amount(amount)
        if from_user == to_user:
            raise SelfTransfer()
        if not self.accounts.exists(to_user):
            raise RecipientNotFound(to_user)
        
        with self.accounts.lock_accounts(from_user, to_user):
            sender = self.accounts.lookup(from_user)
            if sender is None:
                raise AccountNotFound(from_user)
            if sender.balance < amount:
                raise InsufficientFunds(from_user, sender.balance)
            
            applied = []
            try:
                sender = self.accounts.adjust_balance(from_user, -amount)
                applied.append((from_user, -amount))
                self.accounts.adjust_balance(to_user, amount)
                applied.append((to_user, amount))
                transaction = self.transactions.append(from_user, to_user, amount, TransactionKind.TRANSFER)
            except Exception:
                # Undo in reverse; both accounts are still locked
                for username, delta in reversed(applied):
                    self.accounts.adjust_balance(username, -delta)
                raise
        
        return TransferResult(transaction=transaction, new_balance=sender.balance)
    
    # Queries
    
    def get_balance(self, username: str) -> Decimal:
        with self.accounts.lock_accounts(username):
            account = self.accounts.lookup(username)
        if account is None:
            raise AccountNotFound(username)
        return account.balance
    
    def get_transactions(self, username: str) -> List[Transaction]:
        """Transactions involving username, newest first"""
        return self.transactions.query_for(username)
    
    def snapshot(self) -> LedgerSnapshot:
        """Read every balance and the credited total as one consistent view"""
        with self.accounts.freeze():
            balances = {account.username: account.balance for account in self.accounts.all_accounts()}
            total_credited = self.transactions.total_credited()
            count = self.transactions.count()
        return LedgerSnapshot(balances=balances, total_credited=total_credited, transaction_count=count)
    
    # Seeding
    
    def seed_demo_accounts(self, password: str = "password123") -> List[str]:
        """
        Create the alice and bob demo accounts with their opening credits
        
        Accounts that already exist are left alone.
        
        Returns:
            Usernames created by this call
        """
        created = []
        with self.accounts.creation_lock:
            for username, balance in DEMO_ACCOUNTS:
                if self.accounts.exists(username):
                    continue
                self.accounts.create(username, self.hasher.hash(password), balance=balance)
                self.transactions.append(
                    SYSTEM_SENDER, username, balance, TransactionKind.CREDIT,
                    timestamp=DEMO_SEED_TIMESTAMP
                )
                created.append(username)
        
        if created:
            self.logger.info(f"Seeded demo accounts: {', '.join(created)}")
        return created


def build_ledger_service(
    config: Optional[FinPayConfig] = None,
    storage: Optional[StorageInterface] = None
) -> LedgerService:
    """Wire a ledger service from configuration"""
    config = config or get_config()
    storage = storage or InMemoryStorage()
    
    service = LedgerService(
        accounts=AccountStore(storage, starting_balance=Decimal(config.starting_balance)),
        transactions=TransactionLog(storage),
        hasher=PasswordHasher(
            n=config.password_hash_n,
            r=config.password_hash_r,
            p=config.password_hash_p
        ),
        token_issuer=JWTTokenIssuer(
            secret=config.jwt_secret,
            algorithm=config.jwt_algorithm,
            expiry=timedelta(hours=config.jwt_expiry_hours)
        )
    )
    
    if config.seed_demo_accounts:
        service.seed_demo_accounts(config.demo_password)
    
    return service
