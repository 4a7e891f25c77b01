"""Minutes accounting on top of the billing backend.

Usage is charged in whole minute units rounded up: 90 seconds of audio costs
2 minutes. Debits and purchase credits run through TransactionDeduplicator
so a retried caller cannot apply the same effect twice.
"""

import logging
import math

from meeting_transcriber.audio.source import AudioSource
from meeting_transcriber.billing.transactions import TransactionDeduplicator
from meeting_transcriber.pipeline import TranscriptionOrchestrator, TranscriptionResult
from meeting_transcriber.progress import ProgressCallback
from meeting_transcriber.storage.minutes_client import MinutesBackendClient
from meeting_transcriber.utils.errors import BillingError

logger = logging.getLogger(__name__)

SECONDS_PER_MINUTE_UNIT = 60


def minutes_for_seconds(
    seconds: float, unit_seconds: int = SECONDS_PER_MINUTE_UNIT
) -> int:
    """Minute units charged for `seconds` of audio (ceiling, at least 1)."""
    return max(1, math.ceil(seconds / unit_seconds))


class MinutesLedger:
    """Balance checks, usage debits, and purchase credits.

    Args:
        backend: Billing backend client.
        dedup: Transaction registry guarding side effects.
    """

    def __init__(
        self, backend: MinutesBackendClient, dedup: TransactionDeduplicator
    ) -> None:
        self._backend = backend
        self._dedup = dedup
        self.current_balance: int | None = None

    async def refresh_balance(self) -> int:
        self.current_balance = await self._backend.get_balance()
        return self.current_balance

    async def has_minutes_for(self, seconds: float) -> bool:
        balance = await self.refresh_balance()
        return balance >= minutes_for_seconds(seconds)

    async def debit_for_audio(self, seconds: float, job_id: str) -> int:
        """Debit the usage of one job, once per job id.

        Returns:
            The new balance.

        Raises:
            DuplicateTransactionError: If this job was already debited.
            BillingError: If the backend call fails.
        """
        minutes = minutes_for_seconds(seconds)

        async def debit() -> int:
            return await self._backend.debit_minutes(minutes, meeting_id=job_id)

        self.current_balance = await self._dedup.run_once(f"debit:{job_id}", debit)
        logger.info(
            "Charged %d minutes for %.0fs of audio",
            minutes,
            seconds,
            extra={"job_id": job_id},
        )
        return self.current_balance

    async def credit_purchase(
        self,
        transaction_id: str,
        amount: int,
        reason: str,
        metadata: dict[str, str] | None = None,
    ) -> int:
        """Credit a purchase exactly once per store transaction id.

        Raises:
            DuplicateTransactionError: If the transaction was already applied
                or is being applied.
            BillingError: If the backend call fails.
        """

        async def credit() -> int:
            return await self._backend.credit_minutes(
                amount, reason, transaction_id=transaction_id, metadata=metadata
            )

        self.current_balance = await self._dedup.run_once(transaction_id, credit)
        return self.current_balance


async def run_billed_job(
    orchestrator: TranscriptionOrchestrator,
    ledger: MinutesLedger,
    source: AudioSource,
    job_id: str,
    job_name: str = "",
    on_progress: ProgressCallback | None = None,
) -> TranscriptionResult:
    """Run a transcription job charged against the minutes balance.

    The balance is checked up front and debited only when the job reaches
    DONE, so a failed job never costs minutes.

    Raises:
        BillingError: If the balance cannot be read or does not cover the
            source duration.
    """
    seconds = source.duration_seconds or 0.0
    if not await ledger.has_minutes_for(seconds):
        raise BillingError(
            f"Insufficient minutes: {minutes_for_seconds(seconds)} required, "
            f"{ledger.current_balance} available",
            job_id=job_id,
            operation="check_balance",
        )

    result = await orchestrator.run(
        source, on_progress=on_progress, job_id=job_id, job_name=job_name
    )
    if result.status != "done":
        logger.info("Job failed; no minutes charged", extra={"job_id": job_id})
        return result

    try:
        await ledger.debit_for_audio(seconds, job_id)
    except BillingError:
        # The transcript is already produced; the charge is reported, not fatal
        logger.error(
            "Failed to debit minutes for completed job",
            exc_info=True,
            extra={"job_id": job_id},
        )
    return result
