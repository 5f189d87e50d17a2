"""Broadcast campaign submission and queue processing."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.database import SessionLocal, get_db
from app.logging_config import get_logger
from app.routers.admin import require_internal_token
from app.schemas.broadcast import (
    BroadcastRequest,
    BroadcastResponse,
    BroadcastStatusResponse,
    ProcessBroadcastRequest,
    ProcessBroadcastResponse,
)
from app.services.alert_service import alert_error
from app.services.broadcast_service import (
    BroadcastConfigError,
    create_broadcast,
    get_broadcast,
    process_due_broadcasts,
)

logger = get_logger("broadcast")

router = APIRouter(prefix="/broadcasts", tags=["broadcasts"], dependencies=[Depends(require_internal_token)])


async def run_broadcast_worker(log_id: Optional[UUID] = None) -> None:
    """Background worker run with its own session; outcome is only logged."""
    db = SessionLocal()
    try:
        results = await process_due_broadcasts(db, log_id=log_id)
        logger.info("Background broadcast run finished", extra={"context": {"log_id": str(log_id), **results}})
    except Exception as e:
        logger.error("Background broadcast run failed", extra={"context": {"log_id": str(log_id), "error": str(e)}})
    finally:
        db.close()


@router.post("", response_model=BroadcastResponse)
async def submit_broadcast(
    request: BroadcastRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    try:
        log = create_broadcast(db, request)
    except BroadcastConfigError as e:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(e)})

    scheduled = request.scheduled_at is not None
    if not scheduled:
        background_tasks.add_task(run_broadcast_worker, log.id)

    return BroadcastResponse(
        success=True,
        broadcast_id=log.id,
        total=len(request.recipients),
        scheduled=scheduled,
    )


@router.post("/process", response_model=ProcessBroadcastResponse)
async def process_broadcasts(
    request: Optional[ProcessBroadcastRequest] = Body(default=None),
    db: Session = Depends(get_db),
):
    """One worker invocation, optionally targeted at a single campaign."""
    log_id = request.log_id if request else None
    try:
        results = await process_due_broadcasts(db, log_id=log_id)
    except Exception as e:
        logger.exception("Broadcast processing failed", extra={"context": {"log_id": str(log_id)}})
        db.rollback()
        alert_error("Broadcast processing failed", {"log_id": str(log_id), "error": str(e)})
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": str(e)})

    message = "No scheduled broadcasts to process"
    if results["processed"]:
        message = f"Processed {results['processed']} messages"
    return ProcessBroadcastResponse(message=message, **results)


@router.get("/{log_id}", response_model=BroadcastStatusResponse)
def broadcast_status(log_id: UUID, db: Session = Depends(get_db)):
    log = get_broadcast(db, log_id)
    if log is None:
        raise HTTPException(status_code=404, detail=f"Broadcast {log_id} not found")
    return BroadcastStatusResponse(
        broadcast_id=log.id,
        status=log.status,
        total_recipients=log.total_recipients or 0,
        total_sent=log.total_sent or 0,
        total_failed=log.total_failed or 0,
    )
