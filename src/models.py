import threading
from collections import Counter
from dataclasses import dataclass
from decimal import Context, Decimal, DivisionByZero, Inexact, InvalidOperation, Overflow, ROUND_DOWN
from enum import Enum
from typing import Dict, Optional

# All balances and amounts are carried at four fractional digits.
SCALE = Decimal("0.0001")

# Balance arithmetic raises Inexact instead of rounding once a result needs more
# than 28 significant digits.
LEDGER_CONTEXT = Context(prec=28, traps=[Inexact, InvalidOperation, DivisionByZero, Overflow])

MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1


def to_fixed(value: Decimal) -> Decimal:
    """Quantize a decimal to the ledger scale, truncating extra digits."""
    return value.quantize(SCALE, rounding=ROUND_DOWN)


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"

    @property
    def carries_amount(self) -> bool:
        return self in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


class DisputeStatus(Enum):
    NONE = "none"
    DISPUTED = "disputed"
    CLOSED = "closed"


class RejectionReason(Enum):
    DUPLICATE_TRANSACTION = "duplicate transaction"
    UNKNOWN_TRANSACTION = "unknown transaction"
    CLIENT_MISMATCH = "client mismatch"
    INVALID_DISPUTE_STATE = "invalid dispute state"
    INSUFFICIENT_FUNDS = "insufficient funds"
    MISSING_AMOUNT = "missing amount"
    INVALID_AMOUNT = "invalid amount"
    ACCOUNT_LOCKED = "account locked"
    BALANCE_OVERFLOW = "balance overflow"


@dataclass(frozen=True)
class Outcome:
    """Result of applying one record: applied, or rejected with a reason."""

    reason: Optional[RejectionReason] = None

    @property
    def applied(self) -> bool:
        return self.reason is None

    @classmethod
    def rejected(cls, reason: RejectionReason) -> "Outcome":
        return cls(reason=reason)

    def __repr__(self) -> str:
        if self.applied:
            return "Outcome(applied)"
        return f"Outcome(rejected: {self.reason.value})"


Outcome.APPLIED = Outcome()


@dataclass
class Transaction:
    """An incoming record. Only deposits and withdrawals carry an amount."""

    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None

    def __post_init__(self):
        if self.amount is not None:
            self.amount = to_fixed(self.amount)

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass
class StoredTransaction:
    """An accepted deposit or withdrawal, kept so later disputes can reference it."""

    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Decimal
    dispute_status: DisputeStatus = DisputeStatus.NONE

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> "StoredTransaction":
        return cls(
            transaction_type=transaction.transaction_type,
            client_id=transaction.client_id,
            transaction_id=transaction.transaction_id,
            amount=transaction.amount,
        )


@dataclass
class Account:
    client_id: int
    available: Decimal = Decimal("0.0000")
    held: Decimal = Decimal("0.0000")
    locked: bool = False

    @property
    def total(self) -> Decimal:
        return LEDGER_CONTEXT.add(self.available, self.held)

    def _set_balances(self, available: Decimal, held: Decimal) -> None:
        """Commit new balances only if they and their total are exact; raises Inexact otherwise."""
        LEDGER_CONTEXT.add(available, held)
        self.available = available
        self.held = held

    def credit(self, amount: Decimal) -> None:
        self._set_balances(LEDGER_CONTEXT.add(self.available, amount), self.held)

    def debit(self, amount: Decimal) -> None:
        self._set_balances(LEDGER_CONTEXT.subtract(self.available, amount), self.held)

    def hold(self, amount: Decimal) -> None:
        self._set_balances(
            LEDGER_CONTEXT.subtract(self.available, amount),
            LEDGER_CONTEXT.add(self.held, amount),
        )

    def release_hold(self, amount: Decimal) -> None:
        self._set_balances(
            LEDGER_CONTEXT.add(self.available, amount),
            LEDGER_CONTEXT.subtract(self.held, amount),
        )

    def remove_held(self, amount: Decimal) -> None:
        self._set_balances(self.available, LEDGER_CONTEXT.subtract(self.held, amount))


class ProcessingStats:
    """Thread-safe counters for tracking processing statistics."""

    def __init__(self):
        self._lock = threading.Lock()
        self.applied = 0
        self.malformed = 0
        self._rejections: Counter = Counter()

    def record_outcome(self, outcome: Outcome) -> None:
        with self._lock:
            if outcome.applied:
                self.applied += 1
            else:
                self._rejections[outcome.reason] += 1

    def record_malformed(self) -> None:
        with self._lock:
            self.malformed += 1

    @property
    def rejected(self) -> int:
        with self._lock:
            return sum(self._rejections.values())

    def rejections_by_reason(self) -> Dict[RejectionReason, int]:
        with self._lock:
            return dict(self._rejections)
