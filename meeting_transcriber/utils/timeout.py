"""Per-attempt timeout helpers.

run_with_timeout() races an operation against a timer task; whichever
finishes first wins and the other is cancelled. timeout_for_audio() derives
a duration-aware timeout window for a transcription attempt.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from meeting_transcriber.utils.errors import TimeoutExceededError

T = TypeVar("T")

MIN_AUDIO_TIMEOUT_SECONDS = 120.0
MAX_AUDIO_TIMEOUT_SECONDS = 360.0
AUDIO_TIMEOUT_MULTIPLIER = 2.5


def timeout_for_audio(
    duration: float | None,
    minimum: float = MIN_AUDIO_TIMEOUT_SECONDS,
    maximum: float = MAX_AUDIO_TIMEOUT_SECONDS,
) -> float:
    """Return the timeout window for transcribing audio of a given length.

    Args:
        duration: Audio duration in seconds, or None if unknown.
        minimum: Lower bound (and the value used when duration is unknown).
        maximum: Upper bound.

    Returns:
        clamp(duration * 2.5, minimum, maximum), or minimum without a duration.
    """
    if duration is None or duration <= 0:
        return minimum
    return min(maximum, max(minimum, duration * AUDIO_TIMEOUT_MULTIPLIER))


async def _sleep_then_signal(seconds: float) -> None:
    await asyncio.sleep(seconds)


async def run_with_timeout(
    operation: Callable[[], Awaitable[T]], seconds: float
) -> T:
    """Run operation() as a task racing an independent timer task.

    Args:
        operation: Zero-argument callable returning an awaitable.
        seconds: Timer duration.

    Returns:
        The operation's result if it finishes first.

    Raises:
        TimeoutExceededError: If the timer fires first.
        Exception: Whatever the operation raised, if it finished first.
    """
    work = asyncio.ensure_future(operation())
    timer = asyncio.ensure_future(_sleep_then_signal(seconds))
    try:
        done, _ = await asyncio.wait(
            {work, timer}, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        work.cancel()
        timer.cancel()
        await asyncio.gather(work, timer, return_exceptions=True)
        raise

    if work in done:
        timer.cancel()
        await asyncio.gather(timer, return_exceptions=True)
        return work.result()

    work.cancel()
    await asyncio.gather(work, return_exceptions=True)
    raise TimeoutExceededError(
        f"Operation timed out after {seconds:g} seconds",
        timeout_seconds=seconds,
    )
