from typing import Dict, Optional

from models import Account, StoredTransaction


class Ledger:
    """
    Storage for client accounts and the transactions disputes can reference.
    Performs no validation; the processor owns every rule.
    Owned by a single consumer thread, so there is no locking here.
    """

    def __init__(self):
        self._accounts: Dict[int, Account] = {}
        self._transactions: Dict[int, StoredTransaction] = {}

    def get_or_create_account(self, client_id: int) -> Account:
        """Get existing account or create a zeroed one."""
        account = self._accounts.get(client_id)
        if account is None:
            account = Account(client_id=client_id)
            self._accounts[client_id] = account
        return account

    def get_account(self, client_id: int) -> Optional[Account]:
        return self._accounts.get(client_id)

    def has_transaction(self, transaction_id: int) -> bool:
        return transaction_id in self._transactions

    def get_transaction(self, transaction_id: int) -> Optional[StoredTransaction]:
        """Retrieve stored transaction by ID. The stored instance itself is returned."""
        return self._transactions.get(transaction_id)

    def insert_transaction(self, transaction: StoredTransaction) -> None:
        """Store transaction for future dispute lookups."""
        self._transactions[transaction.transaction_id] = transaction

    def get_all_accounts(self) -> Dict[int, Account]:
        """Return all accounts (for final output)."""
        return dict(self._accounts)

    def __len__(self) -> int:
        return len(self._accounts)
