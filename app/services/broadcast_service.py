"""Broadcast campaigns: queue creation and the queue-draining worker."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from functools import partial
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.orm import Session

from app.config import settings
from app.logging_config import get_logger
from app.models import BroadcastLog, BroadcastQueueItem
from app.schemas.broadcast import BroadcastRecipient, BroadcastRequest
from app.services.onesender_service import (
    FAILURE_NOT_CONFIGURED,
    FAILURE_PERMANENT,
    resolve_endpoint,
    send_message,
)
from app.services.settings_service import GatewaySettings, get_gateway_settings

logger = get_logger("broadcast_service")

STATUS_SCHEDULED = "scheduled"
STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"

DOCUMENT_FILENAME = "document.pdf"

OUTCOME_SENT = "sent"
OUTCOME_FAILED = "failed"
OUTCOME_RETRIED = "retried"


class BroadcastConfigError(Exception):
    """Tenant cannot broadcast until the gateway is configured."""


@dataclass(frozen=True)
class CampaignInfo:
    id: UUID
    user_id: UUID
    delay_min: Optional[float]
    delay_max: Optional[float]


# === SUBMISSION ===


def personalize_message(message: str, recipient: BroadcastRecipient, today: datetime) -> str:
    return (
        message.replace("{{nama}}", recipient.name or "")
        .replace("{{tanggal}}", today.strftime("%d/%m/%Y"))
        .replace("{{phone}}", recipient.phone)
    )


def create_broadcast(db: Session, request: BroadcastRequest) -> BroadcastLog:
    """Persist the campaign and one queue item per recipient."""
    if get_gateway_settings(db, request.user_id) is None:
        raise BroadcastConfigError(
            "OneSender API belum dikonfigurasi. Silakan set API URL dan API Key di halaman Settings Anda."
        )

    now = datetime.now(timezone.utc)
    scheduled = request.scheduled_at is not None
    due_at = request.scheduled_at or now

    log = BroadcastLog(
        user_id=request.user_id,
        category_id=request.category_id,
        template_id=request.template_id,
        message=request.message,
        media_type=request.media_type,
        media_url=request.media_url,
        status=STATUS_SCHEDULED if scheduled else STATUS_PROCESSING,
        total_recipients=len(request.recipients),
        total_sent=0,
        total_failed=0,
        scheduled_at=request.scheduled_at,
        delay_min=request.delay_min,
        delay_max=request.delay_max,
        use_personalization=request.use_personalization,
    )
    db.add(log)
    db.flush()

    items = []
    for recipient in request.recipients:
        message = request.message
        if request.use_personalization:
            message = personalize_message(message, recipient, now)
        items.append(
            BroadcastQueueItem(
                broadcast_log_id=log.id,
                phone=recipient.phone,
                name=recipient.name,
                message=message,
                media_type=request.media_type,
                media_url=request.media_url,
                status=STATUS_SCHEDULED if scheduled else STATUS_PENDING,
                retry_count=0,
                scheduled_at=due_at,
            )
        )
    db.add_all(items)
    db.commit()

    logger.info(
        "Broadcast created",
        extra={
            "context": {
                "broadcast_id": str(log.id),
                "user_id": str(request.user_id),
                "recipients": len(items),
                "scheduled_at": due_at.isoformat() if scheduled else None,
            }
        },
    )
    return log


def get_broadcast(db: Session, log_id: UUID) -> Optional[BroadcastLog]:
    return db.query(BroadcastLog).filter(BroadcastLog.id == log_id).first()


# === QUEUE STATE ===


def release_stale_processing(db: Session, *, older_than_minutes: Optional[int] = None) -> int:
    """Return items abandoned mid-send by a crashed run to the pending pool."""
    minutes = older_than_minutes if older_than_minutes is not None else settings.broadcast_stale_minutes
    result = db.execute(
        text(
            """
            UPDATE broadcast_queue
            SET status = 'pending',
                claimed_at = NULL
            WHERE status = 'processing'
              AND claimed_at < NOW() - make_interval(mins => :minutes)
            """
        ),
        {"minutes": minutes},
    )
    db.commit()
    released = result.rowcount or 0
    if released:
        logger.warning(f"Released {released} stale broadcast items")
    return released


def claim_due_items(db: Session, *, limit: int, log_id: Optional[UUID] = None) -> list[dict[str, Any]]:
    """Lock and mark up to `limit` due items so no concurrent run can pick them."""
    campaign_filter = "AND broadcast_log_id = :log_id" if log_id else ""
    params: dict[str, Any] = {"limit": limit}
    if log_id:
        params["log_id"] = log_id

    rows = (
        db.execute(
            text(
                f"""
                WITH cte AS (
                    SELECT id
                    FROM broadcast_queue
                    WHERE status IN ('scheduled', 'pending')
                      AND scheduled_at IS NOT NULL
                      AND scheduled_at <= NOW()
                      {campaign_filter}
                    ORDER BY scheduled_at, created_at
                    LIMIT :limit
                    FOR UPDATE SKIP LOCKED
                )
                UPDATE broadcast_queue
                SET status = 'processing',
                    claimed_at = NOW()
                FROM cte
                WHERE broadcast_queue.id = cte.id
                RETURNING broadcast_queue.id,
                          broadcast_queue.broadcast_log_id,
                          broadcast_queue.phone,
                          broadcast_queue.message,
                          broadcast_queue.media_type,
                          broadcast_queue.media_url,
                          broadcast_queue.retry_count,
                          broadcast_queue.scheduled_at
                """
            ),
            params,
        )
        .mappings()
        .all()
    )
    db.commit()

    # RETURNING order is not guaranteed
    earliest = datetime.min.replace(tzinfo=timezone.utc)
    return sorted((dict(row) for row in rows), key=lambda row: row.get("scheduled_at") or earliest)


def mark_item_sent(db: Session, *, item_id) -> None:
    db.execute(
        text(
            """
            UPDATE broadcast_queue
            SET status = 'sent',
                sent_at = NOW(),
                error_message = NULL
            WHERE id = :id
            """
        ),
        {"id": item_id},
    )
    db.commit()


def mark_item_failed(db: Session, *, item_id, error_message: str, retry_count: Optional[int] = None) -> None:
    db.execute(
        text(
            """
            UPDATE broadcast_queue
            SET status = 'failed',
                error_message = :error_message,
                retry_count = COALESCE(:retry_count, retry_count)
            WHERE id = :id
            """
        ),
        {"id": item_id, "error_message": error_message[:1000], "retry_count": retry_count},
    )
    db.commit()


def reschedule_item(db: Session, *, item_id, retry_count: int, error_message: str, retry_at: datetime) -> None:
    db.execute(
        text(
            """
            UPDATE broadcast_queue
            SET status = 'pending',
                retry_count = :retry_count,
                scheduled_at = :retry_at,
                claimed_at = NULL,
                error_message = :error_message
            WHERE id = :id
            """
        ),
        {"id": item_id, "retry_count": retry_count, "retry_at": retry_at, "error_message": error_message[:1000]},
    )
    db.commit()


def record_campaign_outcome(db: Session, *, log_id, sent: bool) -> bool:
    """Atomically bump the campaign counter; returns True if this bump completed it."""
    column = "total_sent" if sent else "total_failed"
    db.execute(
        text(f"UPDATE broadcast_logs SET {column} = {column} + 1 WHERE id = :id"),
        {"id": log_id},
    )
    completed = db.execute(
        text(
            """
            UPDATE broadcast_logs
            SET status = 'completed'
            WHERE id = :id
              AND status <> 'completed'
              AND total_sent + total_failed >= total_recipients
            RETURNING id
            """
        ),
        {"id": log_id},
    ).first()
    db.commit()

    if completed is not None:
        logger.info("Broadcast completed", extra={"context": {"broadcast_id": str(log_id)}})
        return True
    return False


def mark_campaign_started(db: Session, *, log_id) -> None:
    db.execute(
        text("UPDATE broadcast_logs SET status = 'processing' WHERE id = :id AND status = 'scheduled'"),
        {"id": log_id},
    )
    db.commit()


# === WORKER ===


def _pick_delay(campaign: Optional[CampaignInfo]) -> float:
    low = settings.broadcast_delay_min_seconds
    high = settings.broadcast_delay_max_seconds
    if campaign and campaign.delay_min is not None and campaign.delay_max is not None:
        low, high = float(campaign.delay_min), float(campaign.delay_max)
    if high < low:
        high = low
    return random.uniform(low, high)


class _RunState:
    """Lookups cached for the duration of one worker invocation."""

    def __init__(self, db: Session):
        self.db = db
        self.campaigns: dict[Any, Optional[CampaignInfo]] = {}
        self.gateways: dict[Any, Optional[GatewaySettings]] = {}
        self.started: set = set()

    def campaign(self, log_id) -> Optional[CampaignInfo]:
        if log_id is None:
            return None
        if log_id not in self.campaigns:
            log = self.db.query(BroadcastLog).filter(BroadcastLog.id == log_id).first()
            self.campaigns[log_id] = (
                CampaignInfo(id=log.id, user_id=log.user_id, delay_min=log.delay_min, delay_max=log.delay_max)
                if log
                else None
            )
        return self.campaigns[log_id]

    def gateway(self, user_id) -> Optional[GatewaySettings]:
        if user_id not in self.gateways:
            self.gateways[user_id] = get_gateway_settings(self.db, user_id)
        return self.gateways[user_id]


def _fail_item(
    db: Session,
    row: dict,
    campaign: Optional[CampaignInfo],
    error: str,
    retry_count: Optional[int] = None,
) -> str:
    mark_item_failed(db, item_id=row["id"], error_message=error, retry_count=retry_count)
    if campaign is not None:
        record_campaign_outcome(db, log_id=campaign.id, sent=False)
    return OUTCOME_FAILED


def process_queue_item(db: Session, row: dict, state: _RunState) -> str:
    """Attempt one claimed item; returns sent, failed or retried."""
    campaign = state.campaign(row.get("broadcast_log_id"))
    if campaign is None:
        logger.error(f"Cannot find broadcast log for queue item: {row['id']}")
        return _fail_item(db, row, None, "Broadcast log not found")

    if campaign.id not in state.started:
        mark_campaign_started(db, log_id=campaign.id)
        state.started.add(campaign.id)

    gateway = state.gateway(campaign.user_id)
    if gateway is None:
        logger.error(f"OneSender API not configured for user: {campaign.user_id}")
        return _fail_item(db, row, campaign, "OneSender API not configured")

    media_type = row.get("media_type") or "text"
    result = send_message(
        gateway,
        row["phone"],
        media_type,
        row.get("message") or "",
        row.get("media_url"),
        endpoint=resolve_endpoint(gateway.api_url, media_type),
        filename=DOCUMENT_FILENAME if media_type == "document" else None,
    )

    if result.ok:
        mark_item_sent(db, item_id=row["id"])
        record_campaign_outcome(db, log_id=campaign.id, sent=True)
        return OUTCOME_SENT

    error = result.error or "Unknown error"
    retry_count = (row.get("retry_count") or 0) + 1
    if result.has_code(FAILURE_PERMANENT, FAILURE_NOT_CONFIGURED):
        return _fail_item(db, row, campaign, error, retry_count)
    if retry_count >= settings.broadcast_max_retries:
        return _fail_item(db, row, campaign, f"Max retries reached: {error}", retry_count)

    retry_at = datetime.now(timezone.utc) + timedelta(seconds=settings.broadcast_retry_delay_seconds)
    reschedule_item(db, item_id=row["id"], retry_count=retry_count, error_message=error, retry_at=retry_at)
    logger.warning(
        f"Send to {row['phone']} failed, retry {retry_count} scheduled",
        extra={"context": {"item_id": str(row["id"]), "retry_at": retry_at.isoformat(), "error": error[:200]}},
    )
    return OUTCOME_RETRIED


def _process_row(db: Session, row: dict, state: _RunState) -> str:
    """process_queue_item, turning an unexpected error into a failed item so the batch continues."""
    try:
        return process_queue_item(db, row, state)
    except Exception as e:
        logger.error(f"Error processing queue item {row.get('id')}: {e}")
        db.rollback()
        campaign = state.campaigns.get(row.get("broadcast_log_id"))
        return _fail_item(db, row, campaign, str(e) or e.__class__.__name__)


async def process_due_broadcasts(
    db: Session,
    *,
    log_id: Optional[UUID] = None,
    limit: Optional[int] = None,
    sleep_func=asyncio.sleep,
) -> dict[str, int]:
    """Drain one batch of due queue items, strictly one at a time."""
    results = {"processed": 0, "sent": 0, "failed": 0, "retried": 0}

    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, release_stale_processing, db)
    rows = await loop.run_in_executor(
        None, partial(claim_due_items, db, limit=limit or settings.broadcast_batch_size, log_id=log_id)
    )
    if not rows:
        logger.info("No scheduled broadcasts to process")
        return results

    logger.info(
        f"Found {len(rows)} scheduled messages to send",
        extra={"context": {"log_id": str(log_id) if log_id else None}},
    )
    state = _RunState(db)

    for index, row in enumerate(rows):
        outcome = await loop.run_in_executor(None, _process_row, db, row, state)

        results["processed"] += 1
        results[outcome] += 1

        if index < len(rows) - 1:
            await sleep_func(_pick_delay(state.campaigns.get(row.get("broadcast_log_id"))))

    logger.info("Broadcast batch processed", extra={"context": results})
    return results
