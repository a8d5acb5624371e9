"""
Turns CSV rows into Transaction records.

The header is ``type, client, tx, amount``; names and values are
whitespace-trimmed and the type is case-insensitive. Anything that does
not fit that shape raises MalformedRecordError and never reaches the
processor.
"""

import csv
import re
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterator, Optional, TextIO

from exceptions import MalformedRecordError
from models import MAX_CLIENT_ID, MAX_TRANSACTION_ID, Transaction, TransactionType

REQUIRED_COLUMNS = ("type", "client", "tx")

# Older feeds spell withdrawals "withdraw".
TYPE_ALIASES = {"withdraw": TransactionType.WITHDRAWAL}

# Plain ASCII only: no underscores, exponents, NaN/Infinity or non-Latin digits.
UNSIGNED_INT = re.compile(r"[0-9]+", re.ASCII)
PLAIN_DECIMAL = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)", re.ASCII)


def parse_transaction_type(value: str) -> TransactionType:
    normalized = value.strip().lower()
    if normalized in TYPE_ALIASES:
        return TYPE_ALIASES[normalized]
    try:
        return TransactionType(normalized)
    except ValueError:
        raise MalformedRecordError(f"unknown transaction type {value!r}") from None


def parse_bounded_int(name: str, value: str, maximum: int) -> int:
    if not UNSIGNED_INT.fullmatch(value):
        raise MalformedRecordError(f"{name} is not an unsigned integer: {value!r}")
    number = int(value)
    if number > maximum:
        raise MalformedRecordError(f"{name} {number} out of range 0..{maximum}")
    return number


def parse_amount(value: str) -> Optional[Decimal]:
    if not value:
        return None
    if not PLAIN_DECIMAL.fullmatch(value):
        raise MalformedRecordError(f"amount is not a decimal: {value!r}")
    return Decimal(value)


def is_decodable(value: str) -> bool:
    """False for text carrying bytes that were not valid UTF-8 (surrogate-escaped)."""
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def parse_row(row: Dict[Optional[str], object]) -> Transaction:
    """Parse one csv.DictReader row into a Transaction."""
    normalized = {}
    for key, value in row.items():
        # DictReader files surplus values under None and pads short rows with None.
        if key is None or not isinstance(value, str):
            continue
        normalized[key.strip().lower()] = value.strip()

    if not all(is_decodable(key) and is_decodable(value) for key, value in normalized.items()):
        raise MalformedRecordError("row is not valid UTF-8", row=row)

    for column in REQUIRED_COLUMNS:
        if not normalized.get(column):
            raise MalformedRecordError(f"missing {column}", row=row)

    try:
        transaction_type = parse_transaction_type(normalized["type"])
        client_id = parse_bounded_int("client", normalized["client"], MAX_CLIENT_ID)
        transaction_id = parse_bounded_int("tx", normalized["tx"], MAX_TRANSACTION_ID)
        amount = None
        if transaction_type.carries_amount:
            amount = parse_amount(normalized.get("amount", ""))
        return Transaction(
            transaction_type=transaction_type,
            client_id=client_id,
            transaction_id=transaction_id,
            amount=amount,
        )
    except MalformedRecordError as e:
        e.row = row
        raise
    except InvalidOperation:
        # Quantizing to four places overflows the decimal context.
        raise MalformedRecordError(f"amount too large: {normalized.get('amount')!r}", row=row) from None


def read_rows(source: TextIO) -> Iterator[Dict[Optional[str], object]]:
    """Yield raw rows from a CSV source in file order."""
    reader = csv.DictReader(source, skipinitialspace=True)
    for row in reader:
        yield row
