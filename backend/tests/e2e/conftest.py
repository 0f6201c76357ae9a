"""E2E test fixtures."""

from typing import Awaitable, Callable
from uuid import UUID

import pytest

# Import shared fixtures
from tests.conftest import *  # noqa: F401, F403


@pytest.fixture
def settle(app, test_user) -> Callable[[], Awaitable[None]]:
    """Wait for the test user's auto-chained stages to finish."""

    async def _settle() -> None:
        controller = app.state.services.sessions.peek(UUID(test_user["id"]))
        if controller is not None:
            await controller.wait_idle()

    return _settle
