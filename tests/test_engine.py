import io
import sys
import os
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models import RejectionReason, Transaction, TransactionType
from payments_engine import PaymentsEngine


def write_csv(tmp_path, *lines):
    csv_file = tmp_path / "test.csv"
    csv_file.write_text('\n'.join(["type, client, tx, amount", *lines]))
    return str(csv_file)


class TestPaymentsEngine:
    def setup_method(self):
        self.engine = PaymentsEngine(queue_max_size=2)

    def test_basic_transactions(self, tmp_path):
        accounts = self.engine.process_file(write_csv(
            tmp_path,
            "deposit, 1, 1, 1.0",
            "deposit, 2, 2, 2.0",
            "deposit, 1, 3, 2.0",
            "withdrawal, 1, 4, 1.5",
            "withdrawal, 2, 5, 3.0",
        ))

        assert set(accounts) == {1, 2}

        assert accounts[1].available == Decimal("1.5")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].total == Decimal("1.5")

        assert accounts[2].available == Decimal("2.0")
        assert accounts[2].held == Decimal("0")
        assert accounts[2].total == Decimal("2.0")

        assert self.engine.stats.applied == 4
        assert self.engine.stats.rejections_by_reason() == {RejectionReason.INSUFFICIENT_FUNDS: 1}

    def test_dispute_resolve(self, tmp_path):
        accounts = self.engine.process_file(write_csv(
            tmp_path,
            "deposit, 1, 1, 10.0",
            "dispute, 1, 1,",
            "resolve, 1, 1,",
        ))

        assert accounts[1].available == Decimal("10")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].total == Decimal("10")
        assert accounts[1].locked is False

    def test_chargeback(self, tmp_path):
        accounts = self.engine.process_file(write_csv(
            tmp_path,
            "deposit, 1, 1, 10.0",
            "dispute, 1, 1,",
            "chargeback, 1, 1,",
        ))

        assert accounts[1].available == Decimal("0")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].total == Decimal("0")
        assert accounts[1].locked is True

    def test_dispute_before_deposit_is_rejected(self, tmp_path):
        """Records are applied strictly in input order; nothing is retried."""
        accounts = self.engine.process_file(write_csv(
            tmp_path,
            "dispute, 1, 1,",
            "deposit, 1, 1, 100.0",
        ))

        assert accounts[1].available == Decimal("100")
        assert accounts[1].held == Decimal("0")
        assert self.engine.stats.rejections_by_reason() == {RejectionReason.UNKNOWN_TRANSACTION: 1}

    def test_dispute_unknown_tx_leaves_no_account(self, tmp_path):
        accounts = self.engine.process_file(write_csv(tmp_path, "dispute, 1, 99,"))
        assert accounts == {}

    def test_insufficient_funds(self, tmp_path):
        accounts = self.engine.process_file(write_csv(
            tmp_path,
            "deposit, 1, 1, 10.0",
            "withdrawal, 1, 2, 15.0",
        ))

        assert accounts[1].available == Decimal("10")
        assert accounts[1].total == Decimal("10")

    def test_decimal_precision(self, tmp_path):
        accounts = self.engine.process_file(write_csv(
            tmp_path,
            "deposit, 1, 1, 1.2345",
            "deposit, 1, 2, 0.0001",
            "withdrawal, 1, 3, 0.2346",
        ))

        # 1.2345 + 0.0001 - 0.2346 = 1.0000
        assert accounts[1].available == Decimal("1.0000")

    def test_many_small_deposits_do_not_drift(self, tmp_path):
        lines = [f"deposit, 1, {tx}, 0.1" for tx in range(1, 1001)]
        accounts = self.engine.process_file(write_csv(tmp_path, *lines))
        assert accounts[1].total == Decimal("100")

    def test_duplicate_dispute_ignored(self, tmp_path):
        accounts = self.engine.process_file(write_csv(
            tmp_path,
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "dispute, 1, 1,",
        ))

        assert accounts[1].available == Decimal("0")
        assert accounts[1].held == Decimal("100")

    def test_locked_account_keeps_processing(self, tmp_path):
        accounts = self.engine.process_file(write_csv(
            tmp_path,
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "chargeback, 1, 1,",
            "deposit, 1, 2, 50.0",
            "withdrawal, 1, 3, 10.0",
        ))

        assert accounts[1].available == Decimal("40")
        assert accounts[1].total == Decimal("40")
        assert accounts[1].locked is True

    def test_frozen_account_rejects_operations(self, tmp_path):
        engine = PaymentsEngine(freeze_locked_accounts=True)
        accounts = engine.process_file(write_csv(
            tmp_path,
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "chargeback, 1, 1,",
            "deposit, 1, 2, 50.0",
            "withdrawal, 1, 3, 10.0",
        ))

        assert accounts[1].available == Decimal("0")
        assert accounts[1].total == Decimal("0")
        assert accounts[1].locked is True
        assert engine.stats.rejections_by_reason() == {RejectionReason.ACCOUNT_LOCKED: 2}

    def test_wrong_client_dispute_ignored(self, tmp_path):
        accounts = self.engine.process_file(write_csv(
            tmp_path,
            "deposit, 1, 1, 100.0",
            "dispute, 2, 1,",
        ))

        assert accounts[1].available == Decimal("100")
        assert accounts[1].held == Decimal("0")
        assert 2 not in accounts

    def test_chargeback_after_resolve_ignored(self, tmp_path):
        accounts = self.engine.process_file(write_csv(
            tmp_path,
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "resolve, 1, 1,",
            "chargeback, 1, 1,",
        ))

        assert accounts[1].available == Decimal("100")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].locked is False

    def test_redispute_after_resolve_rejected(self, tmp_path):
        accounts = self.engine.process_file(write_csv(
            tmp_path,
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "resolve, 1, 1,",
            "dispute, 1, 1,",
            "chargeback, 1, 1,",
        ))

        assert accounts[1].available == Decimal("100")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].total == Decimal("100")
        assert accounts[1].locked is False

    def test_multiple_disputes_same_client(self, tmp_path):
        accounts = self.engine.process_file(write_csv(
            tmp_path,
            "deposit, 1, 1, 100.0",
            "deposit, 1, 2, 50.0",
            "dispute, 1, 1,",
            "dispute, 1, 2,",
            "resolve, 1, 1,",
            "chargeback, 1, 2,",
        ))

        assert accounts[1].available == Decimal("100")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].total == Decimal("100")
        assert accounts[1].locked is True

    def test_negative_and_zero_amounts_rejected(self, tmp_path):
        accounts = self.engine.process_file(write_csv(
            tmp_path,
            "deposit, 1, 1, -100.0",
            "deposit, 1, 2, 0",
            "deposit, 1, 3, 50.0",
            "withdrawal, 1, 4, -50.0",
        ))

        assert accounts[1].available == Decimal("50")
        assert self.engine.stats.rejections_by_reason() == {RejectionReason.INVALID_AMOUNT: 3}

    def test_duplicate_deposit_idempotent(self, tmp_path):
        accounts = self.engine.process_file(write_csv(
            tmp_path,
            "deposit, 1, 1, 100.0",
            "deposit, 1, 1, 100.0",
            "deposit, 1, 1, 100.0",
        ))

        assert accounts[1].available == Decimal("100")

    def test_deposit_without_amount_rejected(self, tmp_path):
        accounts = self.engine.process_file(write_csv(
            tmp_path,
            "deposit, 1, 1,",
            "deposit, 1, 2, 5",
        ))

        assert accounts[1].available == Decimal("5")
        assert self.engine.stats.rejections_by_reason() == {RejectionReason.MISSING_AMOUNT: 1}

    def test_malformed_rows_skipped(self, tmp_path):
        accounts = self.engine.process_file(write_csv(
            tmp_path,
            "deposit, 1, 1, 10",
            "bacon, 1, 2, 10",
            "deposit, potato, 3, 10",
            "deposit, 1, 4, notanumber",
            "deposit, 70000, 5, 10",
            "Deposit , 1, 6, 5",
            "withdraw, 1, 7, 1",
        ))

        assert accounts[1].available == Decimal("14")
        assert self.engine.stats.malformed == 4
        assert self.engine.stats.applied == 3

    def test_undecodable_row_skipped(self, tmp_path):
        csv_file = tmp_path / "test.csv"
        csv_file.write_bytes(b"type,client,tx,amount\ndeposit,1,1,5\ndeposit,1,2,\xff\xfe\ndeposit,1,3,7\n")

        accounts = self.engine.process_file(str(csv_file))

        assert accounts[1].available == Decimal("12")
        assert self.engine.stats.malformed == 1
        assert self.engine.stats.applied == 2
        assert not self.engine.ledger.has_transaction(2)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(OSError):
            self.engine.process_file(str(tmp_path / "missing.csv"))

    def test_process_stream(self):
        source = io.StringIO("type,client,tx,amount\ndeposit,3,1,2.5\n")
        accounts = self.engine.process_stream(source)
        assert accounts[3].available == Decimal("2.5")

    def test_process_transactions_in_order(self):
        accounts = self.engine.process_transactions([
            Transaction(TransactionType.DEPOSIT, 1, 1, Decimal("10")),
            Transaction(TransactionType.DISPUTE, 1, 1),
            Transaction(TransactionType.CHARGEBACK, 1, 1),
        ])

        assert accounts[1].total == Decimal("0")
        assert accounts[1].locked is True
        assert self.engine.stats.applied == 3

    def test_publisher_error_propagates(self):
        class BrokenSource(io.StringIO):
            def __iter__(self):
                yield "type,client,tx,amount\n"
                raise OSError("disk went away")

        with pytest.raises(OSError, match="disk went away"):
            self.engine.process_stream(BrokenSource())


class TestSpecScenarios:
    def setup_method(self):
        self.engine = PaymentsEngine()

    @pytest.mark.parametrize(
        "lines, expected",
        [
            (["deposit, 1, 1, 10.0000"], ("10", "0", "10", False)),
            (["deposit, 1, 1, 10.0000", "withdrawal, 1, 2, 15.0000"], ("10", "0", "10", False)),
            (["deposit, 1, 1, 10", "dispute, 1, 1,"], ("0", "10", "10", False)),
            (["deposit, 1, 1, 10", "dispute, 1, 1,", "resolve, 1, 1,"], ("10", "0", "10", False)),
            (["deposit, 1, 1, 10", "dispute, 1, 1,", "chargeback, 1, 1,"], ("0", "0", "0", True)),
        ],
    )
    def test_scenario(self, tmp_path, lines, expected):
        accounts = self.engine.process_file(write_csv(tmp_path, *lines))
        account = accounts[1]
        available, held, total, locked = expected
        assert account.available == Decimal(available)
        assert account.held == Decimal(held)
        assert account.total == Decimal(total)
        assert account.locked is locked
