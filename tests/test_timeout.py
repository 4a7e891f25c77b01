"""Tests for meeting_transcriber.utils.timeout module."""

import asyncio

import pytest

from meeting_transcriber.utils.errors import NetworkFailureError, TimeoutExceededError
from meeting_transcriber.utils.timeout import run_with_timeout, timeout_for_audio


class TestTimeoutForAudio:
    @pytest.mark.parametrize(
        ("duration", "expected"),
        [
            (None, 120.0),
            (0.0, 120.0),
            (40.0, 120.0),
            (100.0, 250.0),
            (200.0, 360.0),
            (3600.0, 360.0),
        ],
    )
    def test_clamped_multiple_of_duration(self, duration, expected) -> None:
        assert timeout_for_audio(duration) == expected

    def test_custom_bounds(self) -> None:
        assert timeout_for_audio(10.0, minimum=5.0, maximum=20.0) == 20.0
        assert timeout_for_audio(None, minimum=5.0, maximum=20.0) == 5.0


class TestRunWithTimeout:
    async def test_returns_result_when_work_wins(self) -> None:
        async def quick() -> str:
            return "done"

        assert await run_with_timeout(quick, 5.0) == "done"

    async def test_raises_when_timer_wins(self) -> None:
        async def slow() -> None:
            await asyncio.sleep(10)

        with pytest.raises(TimeoutExceededError) as exc_info:
            await run_with_timeout(slow, 0.05)

        assert exc_info.value.timeout_seconds == 0.05

    async def test_loser_is_cancelled(self) -> None:
        cancelled = asyncio.Event()

        async def slow() -> None:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        with pytest.raises(TimeoutExceededError):
            await run_with_timeout(slow, 0.05)

        assert cancelled.is_set()

    async def test_propagates_work_error(self) -> None:
        async def broken() -> None:
            raise NetworkFailureError("reset")

        with pytest.raises(NetworkFailureError, match="reset"):
            await run_with_timeout(broken, 5.0)

    async def test_no_tasks_left_behind(self) -> None:
        async def quick() -> int:
            return 1

        before = len(asyncio.all_tasks())
        await run_with_timeout(quick, 5.0)
        assert len(asyncio.all_tasks()) == before
