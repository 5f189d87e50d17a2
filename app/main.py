import asyncio
import os

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from app.config import settings
from app.database import SessionLocal, get_db
from app.logging_config import get_logger, setup_logging
from app.models import BroadcastQueueItem, Contact, InboxMessage
from app.routers import admin, broadcast, webhook
from app.services.broadcast_service import process_due_broadcasts

setup_logging()

app = FastAPI(
    title="BalasinAja API",
    description="WhatsApp autoresponder and broadcast service",
    version="0.1.0",
)

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook.router)
app.include_router(broadcast.router)
app.include_router(admin.router)

worker_logger = get_logger("broadcast_worker")
_broadcast_worker_task: asyncio.Task | None = None


def _is_env_enabled(value: str | None, default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def _is_broadcast_worker_enabled() -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return _is_env_enabled(os.environ.get("BROADCAST_WORKER_ENABLED"), default=False)


def _get_worker_interval() -> float:
    interval_seconds = float(os.environ.get("BROADCAST_WORKER_INTERVAL_SECONDS", "60"))
    return max(interval_seconds, 1.0)


async def _broadcast_worker_loop() -> None:
    while True:
        try:
            await asyncio.sleep(_get_worker_interval())
            db = SessionLocal()
            try:
                results = await process_due_broadcasts(db)
                if results["processed"]:
                    worker_logger.info("Broadcast worker processed", extra={"context": results})
            finally:
                db.close()
        except asyncio.CancelledError:
            break
        except Exception as exc:
            worker_logger.error(
                "Broadcast worker loop failed",
                extra={"context": {"error": str(exc)}},
            )


@app.on_event("startup")
async def start_broadcast_worker() -> None:
    global _broadcast_worker_task
    if not _is_broadcast_worker_enabled():
        return
    if _broadcast_worker_task is None or _broadcast_worker_task.done():
        _broadcast_worker_task = asyncio.create_task(_broadcast_worker_loop())
        worker_logger.info("Broadcast worker started")


@app.on_event("shutdown")
async def stop_broadcast_worker() -> None:
    global _broadcast_worker_task
    if _broadcast_worker_task is None:
        return
    _broadcast_worker_task.cancel()
    try:
        await _broadcast_worker_task
    except asyncio.CancelledError:
        pass
    _broadcast_worker_task = None


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    contacts_count = db.query(Contact).count()
    inbox_count = db.query(InboxMessage).count()
    pending_count = (
        db.query(BroadcastQueueItem)
        .filter(BroadcastQueueItem.status.in_(["scheduled", "pending", "processing"]))
        .count()
    )
    return {
        "status": "ok",
        "contacts": contacts_count,
        "inbox": inbox_count,
        "pending_broadcasts": pending_count,
    }
