"""
Account Store Module

Maps usernames to account records (credential hash and balance). Balances
only move through adjust_balance(), which refuses to take an account below
zero. Each account has its own re-entrant lock; callers touching several
accounts take them through lock_accounts(), which always acquires in
username order.
"""

from decimal import Decimal, Inexact, localcontext
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional
from contextlib import contextmanager, ExitStack
import threading

from .storage import StorageInterface, StorageRecord
from .errors import (
    MissingFields, DuplicateAccount, InsufficientFunds, AccountNotFound, InvalidAmount
)
from .logging_config import get_logger


DEFAULT_STARTING_BALANCE = Decimal("1000")


@dataclass
class Account(StorageRecord):
    """
    A user's account. The record id is the username.
    """
    username: str
    credential_hash: str
    balance: Decimal = DEFAULT_STARTING_BALANCE
    
    def __post_init__(self):
        if not self.username:
            raise ValueError("Account username must be non-empty")
        if not isinstance(self.balance, Decimal):
            self.balance = Decimal(str(self.balance))
        if self.balance < 0:
            raise ValueError("Account balance cannot be negative")
    
    @classmethod
    def from_dict(cls, data: Dict) -> 'Account':
        data['balance'] = Decimal(data['balance'])
        return super().from_dict(data)


class AccountStore:
    """
    Username-keyed account records on top of a storage backend
    
    Lock order: creation_lock, then account locks in username order, then
    the internal guard of the lock table (held only briefly, never while
    waiting on anything else).
    """
    
    def __init__(self, storage: StorageInterface,
                 starting_balance: Decimal = DEFAULT_STARTING_BALANCE):
        self.storage = storage
        self.table_name = "accounts"
        self.starting_balance = Decimal(str(starting_balance))
        self.logger = get_logger("finpay.accounts")
        self.creation_lock = threading.RLock()
        self._locks_guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}
    
    def create(self, username: str, credential_hash: str,
               balance: Optional[Decimal] = None) -> Account:
        """
        Create an account with the starting grant
        
        Args:
            username: Unique, case-sensitive, non-empty
            credential_hash: Already-hashed secret
            balance: Opening balance; defaults to the starting grant
            
        Returns:
            Created Account
            
        Raises:
            MissingFields: username or credential hash empty
            DuplicateAccount: username already present
        """
        if not username or not credential_hash:
            raise MissingFields("Username and password required")
        
        with self.creation_lock:
            if self.storage.exists(self.table_name, username):
                raise DuplicateAccount(username)
            
            now = datetime.now(timezone.utc)
            account = Account(
                id=username,
                created_at=now,
                updated_at=now,
                username=username,
                credential_hash=credential_hash,
                balance=self.starting_balance if balance is None else Decimal(str(balance))
            )
            self._save(account)
        
        self.logger.debug(f"Account created: {username}")
        return account
    
    def lookup(self, username: str) -> Optional[Account]:
        """Get account by username"""
        if not username:
            return None
        data = self.storage.load(self.table_name, username)
        if data is None:
            return None
        return Account.from_dict(data)
    
    def exists(self, username: str) -> bool:
        return bool(username) and self.storage.exists(self.table_name, username)
    
    def adjust_balance(self, username: str, delta: Decimal) -> Account:
        """
        Add delta (negative to debit) to an account's balance
        
        The resulting balance is checked before anything is written.
        Arithmetic must be exact; a delta that would be rounded is refused.
        
        Raises:
            AccountNotFound: no such account
            InsufficientFunds: the result would be negative
            InvalidAmount: the result cannot be represented exactly
        """
        delta = Decimal(str(delta))
        with self.lock_accounts(username):
            account = self.lookup(username)
            if account is None:
                raise AccountNotFound(username)
            
            with localcontext() as ctx:
                ctx.traps[Inexact] = True
                try:
                    new_balance = account.balance + delta
                except Inexact:
                    raise InvalidAmount("Amount exceeds balance precision")
            if new_balance < 0:
                raise InsufficientFunds(username, account.balance)
            
            account.balance = new_balance
            account.updated_at = datetime.now(timezone.utc)
            self._save(account)
            return account
    
    def all_accounts(self) -> List[Account]:
        return [Account.from_dict(data) for data in self.storage.load_all(self.table_name)]
    
    def usernames(self) -> List[str]:
        return sorted(data['username'] for data in self.storage.load_all(self.table_name))
    
    @contextmanager
    def lock_accounts(self, *usernames: str) -> Iterator[None]:
        """Hold the locks of the given accounts, acquired in username order"""
        locks = [self._lock_for(username) for username in sorted(set(usernames))]
        with ExitStack() as stack:
            for lock in locks:
                stack.enter_context(lock)
            yield
    
    @contextmanager
    def freeze(self) -> Iterator[List[str]]:
        """
        Block account creation and every balance change while held
        
        Yields the usernames present at the moment the store froze.
        """
        with self.creation_lock:
            usernames = self.usernames()
            with self.lock_accounts(*usernames):
                yield usernames
    
    def _lock_for(self, username: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(username)
            if lock is None:
                lock = self._locks[username] = threading.RLock()
            return lock
    
    def _save(self, account: Account) -> None:
        self.storage.save(self.table_name, account.username, account.to_dict())
