"""Intake service API (FastAPI)."""
