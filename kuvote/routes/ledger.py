"""
KUVote — Ledger Router.
Integrity verification, chain inspection and recovery.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from starlette.concurrency import run_in_threadpool

from kuvote.api_deps import get_service
from kuvote.exceptions import PersistenceError
from kuvote.models import (
    BlockRecord,
    ChainResponse,
    LedgerReportResponse,
    ResetRequest,
    ResetResponse,
)
from kuvote.service import LedgerService

logger = logging.getLogger("kuvote.api.ledger")
router = APIRouter(prefix="/v1/ledger", tags=["ledger"])


@router.get("/verify", response_model=LedgerReportResponse)
async def verify_ledger(service: LedgerService = Depends(get_service)) -> LedgerReportResponse:
    """Re-derive every hash and link in the chain."""
    report = await run_in_threadpool(service.verify)
    if not report.valid:
        logger.error("Ledger integrity violation at block #%s: %s", report.failed_index, report.reason)
        raise HTTPException(status_code=409, detail={"message": "Chain corrupted", **report.to_dict()})
    return LedgerReportResponse(**report.to_dict())


@router.get("/chain", response_model=ChainResponse)
async def dump_chain(service: LedgerService = Depends(get_service)) -> ChainResponse:
    """Full chain dump for administrative inspection."""
    blocks = service.chain()
    return ChainResponse(
        difficulty=service.difficulty,
        length=len(blocks),
        blocks=[BlockRecord(**b.to_dict()) for b in blocks],
    )


@router.post("/reset", response_model=ResetResponse)
async def reset_ledger(
    req: ResetRequest,
    service: LedgerService = Depends(get_service),
) -> ResetResponse:
    """Discard the chain and start over from genesis. Loses every vote."""
    try:
        discarded = await service.reset(req.reason)
    except PersistenceError:
        logger.exception("Ledger reset could not be persisted")
        raise HTTPException(status_code=503, detail="Reset failed: chain store unavailable")
    return ResetResponse(
        discarded_blocks=discarded,
        message=f"Chain reset; {discarded} vote blocks discarded",
    )
