import logging
from decimal import Decimal, Inexact
from typing import Optional, Tuple

from ledger import Ledger
from models import (
    DisputeStatus,
    Outcome,
    RejectionReason,
    StoredTransaction,
    Transaction,
    TransactionType,
)

logger = logging.getLogger(__name__)


class TransactionProcessor:
    """
    Applies transactions to the ledger one at a time.
    Returns an Outcome; a rejected record leaves the ledger untouched,
    including not creating an account for an unseen client.
    Caller must apply records in input order from a single thread.
    """

    def __init__(self, ledger: Ledger, freeze_locked_accounts: bool = False):
        self._ledger = ledger
        self._freeze_locked_accounts = freeze_locked_accounts

    def apply(self, transaction: Transaction) -> Outcome:
        """
        Apply a single transaction.

        Returns:
            Outcome.APPLIED: balances and dispute state were updated
            Outcome.rejected(reason): nothing was changed
        """
        account = self._ledger.get_account(transaction.client_id)

        # Locked accounts keep accepting records unless freezing is enabled.
        if self._freeze_locked_accounts and account is not None and account.locked:
            outcome = Outcome.rejected(RejectionReason.ACCOUNT_LOCKED)
        else:
            try:
                outcome = self._dispatch(transaction)
            except Inexact:
                # Raised before any balance or dispute status is written.
                outcome = Outcome.rejected(RejectionReason.BALANCE_OVERFLOW)

        self._log_outcome(transaction, outcome)
        return outcome

    def _dispatch(self, transaction: Transaction) -> Outcome:
        match transaction.transaction_type:
            case TransactionType.DEPOSIT:
                return self._handle_deposit(transaction)
            case TransactionType.WITHDRAWAL:
                return self._handle_withdrawal(transaction)
            case TransactionType.DISPUTE:
                return self._handle_dispute(transaction)
            case TransactionType.RESOLVE:
                return self._handle_resolve(transaction)
            case TransactionType.CHARGEBACK:
                return self._handle_chargeback(transaction)

    def _validate_new_transaction(self, transaction: Transaction) -> Optional[Outcome]:
        if transaction.amount is None:
            return Outcome.rejected(RejectionReason.MISSING_AMOUNT)
        if transaction.amount <= 0:
            return Outcome.rejected(RejectionReason.INVALID_AMOUNT)
        if self._ledger.has_transaction(transaction.transaction_id):
            return Outcome.rejected(RejectionReason.DUPLICATE_TRANSACTION)
        return None

    def _handle_deposit(self, transaction: Transaction) -> Outcome:
        rejection = self._validate_new_transaction(transaction)
        if rejection is not None:
            return rejection

        account = self._ledger.get_or_create_account(transaction.client_id)
        account.credit(transaction.amount)
        self._ledger.insert_transaction(StoredTransaction.from_transaction(transaction))
        return Outcome.APPLIED

    def _handle_withdrawal(self, transaction: Transaction) -> Outcome:
        rejection = self._validate_new_transaction(transaction)
        if rejection is not None:
            return rejection

        existing = self._ledger.get_account(transaction.client_id)
        available = existing.available if existing is not None else Decimal("0")
        if transaction.amount > available:
            return Outcome.rejected(RejectionReason.INSUFFICIENT_FUNDS)

        account = self._ledger.get_or_create_account(transaction.client_id)
        account.debit(transaction.amount)
        self._ledger.insert_transaction(StoredTransaction.from_transaction(transaction))
        return Outcome.APPLIED

    def _find_referenced(
        self, transaction: Transaction, required_status: DisputeStatus
    ) -> Tuple[Optional[StoredTransaction], Optional[Outcome]]:
        """Look up the transaction a dispute/resolve/chargeback refers to."""
        original = self._ledger.get_transaction(transaction.transaction_id)

        if original is None:
            return None, Outcome.rejected(RejectionReason.UNKNOWN_TRANSACTION)

        if original.client_id != transaction.client_id:
            return None, Outcome.rejected(RejectionReason.CLIENT_MISMATCH)

        if original.dispute_status != required_status:
            return None, Outcome.rejected(RejectionReason.INVALID_DISPUTE_STATE)

        return original, None

    def _handle_dispute(self, transaction: Transaction) -> Outcome:
        original, rejection = self._find_referenced(transaction, DisputeStatus.NONE)
        if rejection is not None:
            return rejection

        account = self._ledger.get_or_create_account(original.client_id)
        account.hold(original.amount)
        original.dispute_status = DisputeStatus.DISPUTED
        return Outcome.APPLIED

    def _handle_resolve(self, transaction: Transaction) -> Outcome:
        original, rejection = self._find_referenced(transaction, DisputeStatus.DISPUTED)
        if rejection is not None:
            return rejection

        account = self._ledger.get_or_create_account(original.client_id)
        account.release_hold(original.amount)
        original.dispute_status = DisputeStatus.CLOSED
        return Outcome.APPLIED

    def _handle_chargeback(self, transaction: Transaction) -> Outcome:
        original, rejection = self._find_referenced(transaction, DisputeStatus.DISPUTED)
        if rejection is not None:
            return rejection

        account = self._ledger.get_or_create_account(original.client_id)
        account.remove_held(original.amount)
        account.locked = True
        original.dispute_status = DisputeStatus.CLOSED
        return Outcome.APPLIED

    def _log_outcome(self, transaction: Transaction, outcome: Outcome) -> None:
        if outcome.applied:
            logger.debug(f"{transaction}: applied")
        elif outcome.reason == RejectionReason.CLIENT_MISMATCH:
            original = self._ledger.get_transaction(transaction.transaction_id)
            logger.warning(
                f"{transaction}: rejected, tx {transaction.transaction_id} belongs to client {original.client_id}"
            )
        else:
            logger.info(f"{transaction}: rejected, {outcome.reason.value}")
