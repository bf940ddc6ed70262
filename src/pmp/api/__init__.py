"""PMP read API - FastAPI application serving cached market prices.

Usage:
    uvicorn pmp.api.main:app --port 3001
"""

from pmp.api.main import app

__all__ = ["app"]
