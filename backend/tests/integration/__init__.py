"""Integration tests for CallCoach.

Integration tests:
- Drive the API through ASGITransport against the local platform
- Drive the Deepgram, Gemini and Supabase clients over httpx.MockTransport

Markers:
- @pytest.mark.integration
"""
