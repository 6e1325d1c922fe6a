"""
Transaction monitor API routes.

Provides endpoints to start and stop monitors and to inspect their status.
"""

from fastapi import APIRouter, HTTPException, status
from typing import Any, Dict, List, Optional
from pydantic import BaseModel
import logging

from txmonitor.monitor.stores import RecordNotFoundError
from txmonitor.monitor.supervisor import (
    AlreadyFinishedError,
    AlreadyWatchingError,
    get_supervisor,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/monitors", tags=["monitors"])


class WatchResponse(BaseModel):
    """Response for starting or stopping a monitor."""

    tx_hash: str
    watching: bool
    message: str


class SupervisorStatusResponse(BaseModel):
    """Response for supervisor status."""

    active_count: int
    active: List[Dict[str, Any]]
    probe: str
    rate_limiter: Dict[str, Any]
    metrics: Dict[str, Any]
    config: Dict[str, Any]


class MetricsResponse(BaseModel):
    """Response for metrics endpoint."""

    started: int
    finished: int
    outcomes: Dict[str, int]
    probe_calls: int
    avg_probe_latency_seconds: float
    terminal_failures: int
    recent: List[Dict[str, Optional[Any]]]


@router.get("", response_model=SupervisorStatusResponse)
async def get_status():
    """Get active monitors, rate limiter state and metrics."""
    return get_supervisor().get_status()


@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics():
    """Get outcome counters and recently finished monitors."""
    return get_supervisor().metrics.to_dict()


@router.post(
    "/{tx_hash}", response_model=WatchResponse, status_code=status.HTTP_202_ACCEPTED
)
async def watch_transaction(tx_hash: str):
    """
    Start monitoring a stored transaction.

    The transaction must already exist in the record store and still be
    pending; a transaction with a final outcome is never watched again.
    """
    supervisor = get_supervisor()
    try:
        await supervisor.watch_hash(tx_hash)
    except RecordNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Transaction {tx_hash} not found",
        )
    except AlreadyWatchingError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Transaction {tx_hash} is already being watched",
        )
    except AlreadyFinishedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    logger.info(f"Started monitor for {tx_hash}")
    return WatchResponse(tx_hash=tx_hash, watching=True, message="Monitor started")


@router.delete("/{tx_hash}", response_model=WatchResponse)
async def stop_transaction(tx_hash: str):
    """Ask a monitor to stop after its current step."""
    if not get_supervisor().stop(tx_hash):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Transaction {tx_hash} is not being watched",
        )
    return WatchResponse(tx_hash=tx_hash, watching=False, message="Stop requested")
