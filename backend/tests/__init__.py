"""CallCoach test suite.

Test Structure:
    tests/
    ├── conftest.py          # Shared fixtures and provider fakes
    ├── unit/                # In-memory tests, no database
    ├── integration/         # HTTP clients and the API over ASGI
    └── e2e/                 # Full coaching flows through the API

Plugin tests are located within each plugin directory:
    callcoach/plugins/{plugin_name}/tests/

Run specific test categories:
    pytest -m unit
    pytest -m plugin
    pytest callcoach/plugins/upload
"""
