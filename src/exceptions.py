"""
Exceptions raised outside the transaction state machine.

Semantic rejections (insufficient funds, unknown tx, ...) are not exceptions;
the processor reports them as Outcome values. Only the ingest layer raises.
"""

from typing import Dict, Optional


class PaymentsEngineError(Exception):
    """Base exception for payments engine errors."""

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


class MalformedRecordError(PaymentsEngineError):
    """
    Raised when an input row cannot be turned into a Transaction.

    Attributes:
        row: The raw row values as read from the input, if available.
    """

    def __init__(self, detail: str, row: Optional[Dict[str, str]] = None):
        self.row = row
        super().__init__(detail)
