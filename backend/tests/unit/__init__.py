"""Unit tests for CallCoach core functionality.

Unit tests should:
- Not touch the database or the network
- Test individual functions and classes in isolation
- Be fast to execute
"""
