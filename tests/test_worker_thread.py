# tests/test_worker_thread.py

"""Tests for run_detached daemon-thread calls."""

import asyncio
import threading
import unittest

from src.services.worker_thread import run_detached


class TestRunDetached(unittest.IsolatedAsyncioTestCase):
    """run_detached() results, errors and abandonment."""

    async def test_returns_result(self) -> None:
        """Arguments are passed through and the result awaited."""
        result = await run_detached(lambda a, b: a + b, 2, 3)
        self.assertEqual(result, 5)

    async def test_runs_on_daemon_thread(self) -> None:
        """The call never runs on the event loop thread."""
        thread = await run_detached(threading.current_thread)
        self.assertTrue(thread.daemon)
        self.assertIsNot(thread, threading.current_thread())

    async def test_exception_propagates(self) -> None:
        """Errors raised in the worker surface at the await."""
        def fail() -> None:
            raise ValueError("bad markup")

        with self.assertRaises(ValueError):
            await run_detached(fail)

    async def test_abandoned_call_finishes_quietly(self) -> None:
        """A timed-out call completes later without touching the future."""
        release = threading.Event()
        finished = threading.Event()
        self.addCleanup(release.set)

        def slow() -> str:
            release.wait(5)
            finished.set()
            return "late"

        with self.assertRaises(asyncio.TimeoutError):
            await asyncio.wait_for(run_detached(slow), timeout=0.05)

        release.set()
        await asyncio.to_thread(finished.wait, 5)
        await asyncio.sleep(0)
        self.assertTrue(finished.is_set())


if __name__ == "__main__":
    unittest.main()
