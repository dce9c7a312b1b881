"""Diagnostics API for the reconciliation pipeline."""

from fastapi import APIRouter

router = APIRouter(prefix="/api/diagnostics", tags=["diagnostics"])

# Will be set by main.py
tracker = None


@router.get("")
async def get_diagnostics():
    """Get pipeline counters: static data, snapshot, staleness, cards, errors."""
    if tracker is None:
        return {"error": "Tracker not initialized"}
    return tracker.get_diagnostics()
