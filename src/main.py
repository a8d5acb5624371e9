import csv
import logging
import sys
from typing import List, Optional

from pydantic import ValidationError

from config import Settings
from payments_engine import PaymentsEngine
from reporter import write_accounts

logger = logging.getLogger(__name__)

USAGE = "Usage: payments-engine <transactions.csv>"


def configure_logging(settings: Settings) -> None:
    """Send logs to stderr; stdout is reserved for the account report."""
    if settings.ENABLE_LOGGING:
        logging.basicConfig(
            level=settings.LOG_LEVEL,
            format="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            stream=sys.stderr,
            force=True,
        )
    else:
        logging.basicConfig(
            level=logging.WARNING,
            format="%(levelname)s: %(message)s",
            stream=sys.stderr,
            force=True,
        )


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    try:
        settings = Settings()
    except ValidationError as e:
        print(f"invalid configuration: {e}", file=sys.stderr)
        return 1
    configure_logging(settings)

    if len(args) != 1:
        print(USAGE, file=sys.stderr)
        return 1

    filepath = args[0]
    engine = PaymentsEngine(
        freeze_locked_accounts=settings.FREEZE_LOCKED_ACCOUNTS,
        queue_max_size=settings.QUEUE_MAX_SIZE,
    )

    try:
        accounts = engine.process_file(filepath)
    except (OSError, csv.Error, ValueError) as e:
        logger.error(f"error reading transactions: {e}")
        return 1

    try:
        write_accounts(accounts, sys.stdout)
        sys.stdout.flush()
    except OSError as e:
        logger.error(f"error writing accounts: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
