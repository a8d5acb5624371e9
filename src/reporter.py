import csv
from decimal import Decimal
from typing import Dict, TextIO

from models import Account

HEADER = ("client", "available", "held", "total", "locked")


def format_decimal(value: Decimal) -> str:
    """Format decimal with up to 4 decimal places, removing trailing zeros."""
    normalized = value.normalize()
    return f"{normalized:f}"


def account_row(account: Account) -> list:
    return [
        account.client_id,
        format_decimal(account.available),
        format_decimal(account.held),
        format_decimal(account.total),
        str(account.locked).lower(),
    ]


def write_accounts(accounts: Dict[int, Account], stream: TextIO) -> None:
    """Write accounts as CSV, one row per client ordered by client id."""
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(HEADER)
    for client_id in sorted(accounts.keys()):
        writer.writerow(account_row(accounts[client_id]))
