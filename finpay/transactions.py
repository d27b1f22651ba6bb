"""
Transaction Log Module

Append-only, ordered record of every credit and transfer. Ids are assigned
sequentially under the log's lock, so id order is append order. Records are
frozen once written; nothing is ever rewritten or removed.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from enum import Enum
import threading

from .storage import StorageInterface
from .errors import InvalidAmount, MissingFields


SYSTEM_SENDER = "system"


class TransactionKind(Enum):
    """Kinds of ledger transaction"""
    CREDIT = "credit"        # Value-creating grant from the system
    TRANSFER = "transfer"    # Value-conserving move between two accounts


@dataclass(frozen=True)
class Transaction:
    """
    Immutable ledger transaction
    """
    id: int
    from_user: str
    to_user: str
    amount: Decimal
    timestamp: datetime
    kind: TransactionKind
    
    def involves(self, username: str) -> bool:
        return self.from_user == username or self.to_user == username
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "from": self.from_user,
            "to": self.to_user,
            "amount": str(self.amount),
            "timestamp": self.timestamp.isoformat(),
            "type": self.kind.value,
        }
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        return cls(
            id=int(data["id"]),
            from_user=data["from"],
            to_user=data["to"],
            amount=Decimal(data["amount"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            kind=TransactionKind(data["type"]),
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionLog:
    """
    Sequentially numbered transaction records on top of a storage backend
    """
    
    def __init__(self, storage: StorageInterface,
                 clock: Optional[Callable[[], datetime]] = None):
        self.storage = storage
        self.table_name = "transactions"
        self.clock = clock or _utcnow
        self._lock = threading.Lock()
        self._next_id = self.storage.count(self.table_name) + 1
    
    def append(
        self,
        from_user: str,
        to_user: str,
        amount: Decimal,
        kind: TransactionKind,
        timestamp: Optional[datetime] = None
    ) -> Transaction:
        """
        Record a transaction
        
        Args:
            from_user: Source username, or SYSTEM_SENDER for credits
            to_user: Destination username
            amount: Strictly positive amount
            kind: Credit or transfer
            timestamp: Creation time; defaults to now
            
        Returns:
            The stored Transaction with its assigned id
        """
        amount = Decimal(str(amount))
        if amount <= 0:
            raise InvalidAmount()
        if not from_user or not to_user:
            raise MissingFields("Transaction parties required")
        
        with self._lock:
            transaction = Transaction(
                id=self._next_id,
                from_user=from_user,
                to_user=to_user,
                amount=amount,
                timestamp=timestamp or self.clock(),
                kind=kind,
            )
            self.storage.save(self.table_name, str(transaction.id), transaction.to_dict())
            self._next_id += 1
        
        return transaction
    
    def get(self, transaction_id: int) -> Optional[Transaction]:
        data = self.storage.load(self.table_name, str(transaction_id))
        if data is None:
            return None
        return Transaction.from_dict(data)
    
    def all(self) -> List[Transaction]:
        """Every transaction in append order"""
        transactions = [Transaction.from_dict(data) for data in self.storage.load_all(self.table_name)]
        transactions.sort(key=lambda t: t.id)
        return transactions
    
    def query_for(self, username: str) -> List[Transaction]:
        """
        Transactions sent or received by a user, newest first
        
        Equal timestamps are ordered by descending id.
        """
        transactions = [t for t in self.all() if t.involves(username)]
        transactions.sort(key=lambda t: (t.timestamp, t.id), reverse=True)
        return transactions
    
    def count(self) -> int:
        return self.storage.count(self.table_name)
    
    def total_credited(self) -> Decimal:
        """Sum of all value-creating credits"""
        return sum(
            (t.amount for t in self.all() if t.kind == TransactionKind.CREDIT),
            Decimal("0")
        )
