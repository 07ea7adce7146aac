"""Unit tests for per-submission locks."""

import asyncio

import pytest

from docvoice_core.pipeline import SubmissionLocks


class TestSubmissionLocks:
    """Tests for SubmissionLocks."""

    @pytest.mark.asyncio
    async def test_same_submission_serialized(self):
        locks = SubmissionLocks()
        events = []

        async def _work(tag):
            async with locks.hold(1):
                events.append(f"{tag}-start")
                await asyncio.sleep(0.01)
                events.append(f"{tag}-end")

        await asyncio.gather(_work("a"), _work("b"))

        assert events in (
            ["a-start", "a-end", "b-start", "b-end"],
            ["b-start", "b-end", "a-start", "a-end"],
        )

    @pytest.mark.asyncio
    async def test_different_submissions_concurrent(self):
        locks = SubmissionLocks()
        inside = asyncio.Event()

        async def _first():
            async with locks.hold(1):
                await inside.wait()

        async def _second():
            async with locks.hold(2):
                assert locks.is_locked(1)
                inside.set()

        await asyncio.wait_for(asyncio.gather(_first(), _second()), timeout=1)

    @pytest.mark.asyncio
    async def test_released_locks_are_dropped(self):
        """Test the registry does not grow with finished submissions."""
        locks = SubmissionLocks()

        async with locks.hold(1):
            assert len(locks) == 1
            assert locks.is_locked(1)

        assert len(locks) == 0
        assert not locks.is_locked(1)

    @pytest.mark.asyncio
    async def test_released_on_error(self):
        locks = SubmissionLocks()

        with pytest.raises(RuntimeError):
            async with locks.hold(1):
                raise RuntimeError("boom")

        assert not locks.is_locked(1)
