"""
KUVote — Votes Router.
Vote submission, duplicate checks and results.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from kuvote.api_deps import get_service
from kuvote.chain.payload import VotePayload, fingerprint_identity
from kuvote.exceptions import (
    DuplicateVoteError,
    MalformedPayloadError,
    MiningError,
    StaleHeadError,
    UnconfirmedVoteError,
)
from kuvote.models import (
    CandidateResult,
    ResultsResponse,
    VoteRequest,
    VoteResponse,
    VoteStatusResponse,
)
from kuvote.service import LedgerService

logger = logging.getLogger("kuvote.api.votes")
router = APIRouter(tags=["votes"])


@router.post("/v1/votes", response_model=VoteResponse)
async def submit_vote(
    req: VoteRequest,
    service: LedgerService = Depends(get_service),
) -> VoteResponse:
    """Record a vote. Only the voter's fingerprint is stored."""
    try:
        payload = VotePayload.create(fingerprint_identity(req.voter_id), req.candidate_id, req.faculty)
        block = await service.submit(payload)
    except MalformedPayloadError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except DuplicateVoteError:
        raise HTTPException(status_code=409, detail="This voter has already voted")
    except StaleHeadError:
        raise HTTPException(status_code=409, detail="Ledger head moved; resubmit the vote")
    except UnconfirmedVoteError:
        raise HTTPException(status_code=503, detail="Vote could not be recorded; it was NOT counted")
    except MiningError as e:
        logger.warning("Vote not sealed: %s", e)
        raise HTTPException(status_code=503, detail="Vote could not be sealed in time; it was NOT counted")

    return VoteResponse(
        index=block.index,
        hash=block.hash,
        previous_hash=block.previous_hash,
        nonce=block.nonce,
        timestamp=block.timestamp,
        message=f"Vote recorded in block #{block.index}",
    )


@router.get("/v1/votes/{fingerprint}", response_model=VoteStatusResponse)
async def vote_status(
    fingerprint: str,
    service: LedgerService = Depends(get_service),
) -> VoteStatusResponse:
    """Duplicate-vote check by identity fingerprint."""
    return VoteStatusResponse(fingerprint=fingerprint, has_voted=service.has_voted(fingerprint))


@router.get("/v1/results", response_model=ResultsResponse)
async def results(service: LedgerService = Depends(get_service)) -> ResultsResponse:
    """Per-candidate tally, most votes first."""
    ranked = service.results()
    return ResultsResponse(
        total_votes=sum(votes for _, votes in ranked),
        results=[CandidateResult(candidate_id=c, votes=v) for c, v in ranked],
    )
