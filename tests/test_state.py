"""Tests for the session state manager."""

from __future__ import annotations

import asyncio
import unittest

from termai.state import SessionState, StateManager


class StateManagerTests(unittest.IsolatedAsyncioTestCase):
    """Validate lock-protected transitions."""

    async def test_initial_state_is_idle(self) -> None:
        manager = StateManager()
        self.assertEqual(manager.state, SessionState.IDLE)
        self.assertTrue(await manager.begin_streaming())

    async def test_transition_to_returns_new_state(self) -> None:
        manager = StateManager()
        self.assertEqual(
            await manager.transition_to(SessionState.COMPOSING), SessionState.COMPOSING
        )
        self.assertEqual(manager.state, SessionState.COMPOSING)

    async def test_begin_streaming_allows_only_one_winner(self) -> None:
        manager = StateManager()
        await manager.transition_to(SessionState.COMPOSING)
        results = await asyncio.gather(*(manager.begin_streaming() for _ in range(5)))
        self.assertEqual(results.count(True), 1)
        self.assertEqual(manager.state, SessionState.STREAMING)
        self.assertFalse(await manager.begin_streaming())

    async def test_error_state_still_accepts_messages(self) -> None:
        manager = StateManager()
        await manager.transition_to(SessionState.ERROR)
        self.assertTrue(await manager.begin_streaming())


if __name__ == "__main__":
    unittest.main()
