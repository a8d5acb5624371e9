import logging
import threading
from typing import Dict, Iterable, Optional, TextIO

from exceptions import MalformedRecordError
from ledger import Ledger
from message_queue import InMemoryQueue
from models import Account, ProcessingStats, Transaction
from record_parser import parse_row, read_rows
from transaction_processor import TransactionProcessor

logger = logging.getLogger(__name__)


class PaymentsEngine:
    """
    Orchestrates transaction processing with a publisher-consumer pair.
    The publisher parses CSV rows onto a FIFO queue; exactly one consumer
    applies them, so every record commits before the next one is read
    off the queue.
    """

    def __init__(self, freeze_locked_accounts: bool = False, queue_max_size: int = 0):
        self._queue_max_size = queue_max_size
        self._ledger = Ledger()
        self._processor = TransactionProcessor(self._ledger, freeze_locked_accounts=freeze_locked_accounts)
        self._stats = ProcessingStats()

    @property
    def stats(self) -> ProcessingStats:
        return self._stats

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    def process_file(self, filepath: str) -> Dict[int, Account]:
        """
        Process CSV file and return final account states. OSError propagates.
        Undecodable bytes are surrogate-escaped so only their row is skipped.
        """
        with open(filepath, "r", encoding="utf-8", errors="surrogateescape", newline="") as f:
            return self.process_stream(f)

    def process_stream(self, source: TextIO) -> Dict[int, Account]:
        """Process an open CSV source and return final account states."""
        logger.info("Starting processing")

        queue = InMemoryQueue(max_size=self._queue_max_size)
        errors: Dict[str, BaseException] = {}

        publisher_thread = threading.Thread(
            target=self._publish_transactions, args=(source, queue, errors), name="publisher"
        )
        consumer_thread = threading.Thread(
            target=self._consume_transactions, args=(queue, errors), name="consumer"
        )
        publisher_thread.start()
        consumer_thread.start()

        publisher_thread.join()
        consumer_thread.join()

        for error in errors.values():
            raise error

        self._log_summary()
        return self._ledger.get_all_accounts()

    def process_transactions(self, transactions: Iterable[Transaction]) -> Dict[int, Account]:
        """Apply already-parsed transactions in order on the calling thread."""
        for transaction in transactions:
            self._stats.record_outcome(self._processor.apply(transaction))
        return self._ledger.get_all_accounts()

    def _publish_transactions(self, source: TextIO, queue: InMemoryQueue, errors: Dict[str, BaseException]) -> None:
        """Read CSV and publish transactions to queue."""
        try:
            for row in read_rows(source):
                transaction = self._parse_csv_row(row)
                if transaction is None:
                    continue
                if not queue.publish_message(transaction):
                    break
        except Exception as e:
            errors["publisher"] = e
        finally:
            queue.shutdown()

    def _consume_transactions(self, queue: InMemoryQueue, errors: Dict[str, BaseException]) -> None:
        """Consumer loop: pull from queue and apply in order."""
        try:
            while True:
                transaction = queue.consume_message()
                if transaction is None:
                    if queue.is_drained():
                        break
                    continue
                self._stats.record_outcome(self._processor.apply(transaction))
        except Exception as e:
            errors["consumer"] = e
            queue.abort()

    def _parse_csv_row(self, row: Dict) -> Optional[Transaction]:
        try:
            return parse_row(row)
        except MalformedRecordError as e:
            self._stats.record_malformed()
            logger.warning(f"Skipping malformed row {row}: {e}")
            return None

    def _log_summary(self) -> None:
        logger.info(
            f"Applied: {self._stats.applied}, "
            f"Rejected: {self._stats.rejected}, "
            f"Malformed: {self._stats.malformed}"
        )
        for reason, count in sorted(self._stats.rejections_by_reason().items(), key=lambda item: item[0].value):
            logger.info(f"  {reason.value}: {count}")
