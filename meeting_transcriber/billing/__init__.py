"""Minutes accounting and transaction de-duplication."""

from meeting_transcriber.billing.minutes import (
    MinutesLedger,
    minutes_for_seconds,
    run_billed_job,
)
from meeting_transcriber.billing.transactions import (
    DuplicateTransactionError,
    TransactionDeduplicator,
)

__all__ = [
    "DuplicateTransactionError",
    "MinutesLedger",
    "TransactionDeduplicator",
    "minutes_for_seconds",
    "run_billed_job",
]
