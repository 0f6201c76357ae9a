"""Workflow stage plugins: upload, recording, transcription, analysis, history."""
