"""Hyper-V mock management server (FastAPI)."""
