"""
KUVote — API Dependencies.
Shared dependencies for FastAPI routes.
"""

from __future__ import annotations

from fastapi import Request

from kuvote.service import LedgerService


def get_service(request: Request) -> LedgerService:
    """Inject the ledger service owned by the running app."""
    return request.app.state.service
