"""
Test suite for the account store

Tests account creation, lookup, balance adjustment and per-account locking.
CRITICAL: Validates that no balance can be taken below zero.
"""

import pytest
import threading
from decimal import Decimal
from datetime import datetime, timezone

from finpay.storage import InMemoryStorage
from finpay.accounts import Account, AccountStore
from finpay.errors import (
    MissingFields, DuplicateAccount, InsufficientFunds, AccountNotFound,
    InvalidAmount
)


class TestAccount:
    """Test the account record"""
    
    def test_negative_balance_rejected(self):
        now = datetime.now(timezone.utc)
        with pytest.raises(ValueError, match="negative"):
            Account(id="a", created_at=now, updated_at=now,
                    username="a", credential_hash="h", balance=Decimal("-1"))
    
    def test_empty_username_rejected(self):
        now = datetime.now(timezone.utc)
        with pytest.raises(ValueError):
            Account(id="", created_at=now, updated_at=now,
                    username="", credential_hash="h")
    
    def test_balance_coerced_to_decimal(self):
        now = datetime.now(timezone.utc)
        account = Account(id="a", created_at=now, updated_at=now,
                          username="a", credential_hash="h", balance=250)
        assert account.balance == Decimal("250")
        assert isinstance(account.balance, Decimal)


class TestAccountStore:
    """Test account store operations"""
    
    def setup_method(self):
        """Set up test fixtures"""
        self.storage = InMemoryStorage()
        self.store = AccountStore(self.storage)
    
    def test_create_account_with_starting_grant(self):
        """Test that a new account opens with 1000"""
        account = self.store.create("carol", "hash")
        
        assert account.username == "carol"
        assert account.balance == Decimal("1000")
        assert account.credential_hash == "hash"
        assert self.store.exists("carol")
    
    def test_create_with_explicit_balance(self):
        account = self.store.create("bob", "hash", balance=Decimal("1500"))
        assert account.balance == Decimal("1500")
    
    def test_custom_starting_balance(self):
        store = AccountStore(InMemoryStorage(), starting_balance=Decimal("50"))
        assert store.create("dave", "hash").balance == Decimal("50")
    
    def test_duplicate_account(self):
        """Test that a username can only be registered once"""
        self.store.create("carol", "hash")
        
        with pytest.raises(DuplicateAccount):
            self.store.create("carol", "other-hash")
    
    def test_usernames_are_case_sensitive(self):
        self.store.create("carol", "hash")
        self.store.create("Carol", "hash")
        
        assert self.store.usernames() == ["Carol", "carol"]
    
    def test_create_requires_fields(self):
        with pytest.raises(MissingFields):
            self.store.create("", "hash")
        with pytest.raises(MissingFields):
            self.store.create("carol", "")
    
    def test_lookup(self):
        self.store.create("carol", "hash")
        
        account = self.store.lookup("carol")
        assert account is not None
        assert account.username == "carol"
        assert self.store.lookup("nobody") is None
        assert self.store.lookup("") is None
    
    def test_adjust_balance(self):
        """Test credit and debit"""
        self.store.create("carol", "hash")
        
        assert self.store.adjust_balance("carol", Decimal("-300")).balance == Decimal("700")
        assert self.store.adjust_balance("carol", Decimal("50")).balance == Decimal("750")
        assert self.store.lookup("carol").balance == Decimal("750")
    
    def test_adjust_balance_to_exactly_zero(self):
        self.store.create("carol", "hash")
        assert self.store.adjust_balance("carol", Decimal("-1000")).balance == Decimal("0")
    
    def test_overdraw_rejected_without_mutation(self):
        """Test that an overdraft is refused and the balance is untouched"""
        self.store.create("carol", "hash")
        
        with pytest.raises(InsufficientFunds) as exc_info:
            self.store.adjust_balance("carol", Decimal("-1000.01"))
        
        assert exc_info.value.balance == Decimal("1000")
        assert "1000" in str(exc_info.value)
        assert self.store.lookup("carol").balance == Decimal("1000")
    
    @pytest.mark.parametrize("delta", [
        Decimal("0.000000000000000000000000001"),
        Decimal("-0.000000000000000000000000001"),
    ])
    def test_inexact_adjustment_rejected(self, delta):
        """Test that a delta lost to rounding never reaches the balance"""
        self.store.create("carol", "hash")
        
        with pytest.raises(InvalidAmount):
            self.store.adjust_balance("carol", delta)
        
        assert self.store.lookup("carol").balance == Decimal("1000")
    
    def test_adjust_unknown_account(self):
        with pytest.raises(AccountNotFound):
            self.store.adjust_balance("nobody", Decimal("10"))
    
    def test_lookup_returns_copy(self):
        """Test that changing a looked-up account does not change the store"""
        self.store.create("carol", "hash")
        account = self.store.lookup("carol")
        account.balance = Decimal("1")
        
        assert self.store.lookup("carol").balance == Decimal("1000")
    
    def test_concurrent_debits_never_overdraw(self):
        """Test that racing debits cannot take an account negative"""
        self.store.create("carol", "hash")
        failures = []
        
        def debit():
            for _ in range(50):
                try:
                    self.store.adjust_balance("carol", Decimal("-7"))
                except InsufficientFunds:
                    failures.append(1)
        
        threads = [threading.Thread(target=debit) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        
        balance = self.store.lookup("carol").balance
        assert balance >= 0
        assert balance == Decimal("1000") - Decimal("7") * (400 - len(failures))
    
    def test_concurrent_registration_of_same_username(self):
        """Test that only one of many racing creates succeeds"""
        created = []
        duplicates = []
        barrier = threading.Barrier(6)
        
        def create():
            barrier.wait()
            try:
                created.append(self.store.create("carol", "hash"))
            except DuplicateAccount:
                duplicates.append(1)
        
        threads = [threading.Thread(target=create) for _ in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        
        assert len(created) == 1
        assert len(duplicates) == 5


class TestAccountLocking:
    """Test multi-account lock acquisition"""
    
    def setup_method(self):
        self.store = AccountStore(InMemoryStorage())
        for name in ("alice", "bob"):
            self.store.create(name, "hash")
    
    def test_lock_accounts_is_reentrant(self):
        with self.store.lock_accounts("alice", "bob"):
            with self.store.lock_accounts("alice"):
                self.store.adjust_balance("alice", Decimal("-1"))
        assert self.store.lookup("alice").balance == Decimal("999")
    
    def test_opposite_order_does_not_deadlock(self):
        """Test that locking (a, b) and (b, a) from two threads completes"""
        def lock_many(first, second):
            for _ in range(500):
                with self.store.lock_accounts(first, second):
                    pass
        
        threads = [
            threading.Thread(target=lock_many, args=("alice", "bob")),
            threading.Thread(target=lock_many, args=("bob", "alice")),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)
        
        assert not any(thread.is_alive() for thread in threads)
    
    def test_freeze_yields_current_usernames(self):
        with self.store.freeze() as usernames:
            assert usernames == ["alice", "bob"]
