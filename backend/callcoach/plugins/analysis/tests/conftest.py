"""Analysis plugin test fixtures."""

# Import shared fixtures
from tests.conftest import *  # noqa: F401, F403
