"""Inbound WhatsApp webhook: the autoreply pipeline."""

import asyncio
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.database import get_db
from app.logging_config import bind_logger, get_logger
from app.models import InboxStatus
from app.schemas.webhook import InboundWebhookPayload, WebhookResponse, WebhookStatus
from app.services.ai_service import generate_ai_reply
from app.services.alert_service import alert_error
from app.services.contact_service import get_contact_name, upsert_contact
from app.services.inbox_service import get_recent_history, mark_no_reply, mark_replied, record_inbound_message
from app.services.knowledge_service import build_knowledge_context
from app.services.message_service import AI_MESSAGE_TYPES, NormalizedMessage, is_eligible, normalize_inbound
from app.services.onesender_service import send_message
from app.services.settings_service import TenantConfig, load_tenant_config
from app.services.trigger_service import find_trigger, render_trigger_content

logger = get_logger("webhook")

router = APIRouter(tags=["webhook"])


# === PIPELINE ===


def _reply_with_trigger(db: Session, config: TenantConfig, message: NormalizedMessage, log) -> bool:
    autoreply = find_trigger(db, config.user_id, message.text)
    if autoreply is None:
        return False

    log.info(f"Found trigger match: {autoreply.trigger}")
    name = get_contact_name(db, config.user_id, message.phone) or message.name
    content = render_trigger_content(autoreply.content, phone=message.phone, name=name)
    message_type = autoreply.message_type or "text"

    result = send_message(config.gateway, message.phone, message_type, content, autoreply.url_image)
    if not result.ok:
        log.warning(f"Trigger reply not delivered: {result.error}")
        return False

    mark_replied(
        db,
        config.user_id,
        message.message_id,
        status=InboxStatus.REPLIED_TRIGGER,
        reply_type=message_type,
        reply_message=content,
        reply_image=autoreply.url_image,
    )
    return True


def _reply_with_ai(db: Session, config: TenantConfig, message: NormalizedMessage, history: list, log) -> bool:
    if message.message_type not in AI_MESSAGE_TYPES:
        return False

    context = build_knowledge_context(db, config.user_id)
    reply = generate_ai_reply(config.ai, message.text, context, history, message.image_url)
    if not reply:
        log.info("No AI reply generated")
        return False

    result = send_message(config.gateway, message.phone, "text", reply)
    if not result.ok:
        log.warning(f"AI reply not delivered: {result.error}")
        return False

    mark_replied(
        db,
        config.user_id,
        message.message_id,
        status=InboxStatus.REPLIED_AI,
        reply_type="text",
        reply_message=reply,
    )
    return True


def handle_inbound_message(db: Session, user_id: UUID, payload: InboundWebhookPayload) -> WebhookStatus:
    """Record one inbound message and answer it with a trigger or an AI reply.

    Trigger replies win over AI replies. A message is answered at most once:
    a redelivered message_id is recorded once and then ignored.
    """
    if not is_eligible(payload):
        logger.info(
            "Skipping message",
            extra={
                "context": {
                    "user_id": str(user_id),
                    "is_group": payload.is_group,
                    "is_from_me": payload.is_from_me,
                    "message_type": payload.message_type,
                }
            },
        )
        return "ignored"

    message = normalize_inbound(payload)
    log = bind_logger("webhook", user_id=str(user_id), phone=message.phone, message_id=message.message_id)
    log.info(f"Processing {message.message_type} message")

    config = load_tenant_config(db, user_id)
    upsert_contact(db, user_id, message.phone, message.name)

    if not record_inbound_message(db, user_id, message):
        log.info("Duplicate message_id, already handled")
        return "ignored"

    history = get_recent_history(db, user_id, message.phone, exclude_message_id=message.message_id)

    if _reply_with_trigger(db, config, message, log):
        log.info("Replied with trigger")
        return "replied_trigger"

    if _reply_with_ai(db, config, message, history, log):
        log.info("Replied with AI")
        return "replied_ai"

    mark_no_reply(db, user_id, message.message_id)
    return "no_reply"


# === ROUTES ===


class WebhookRequestError(Exception):
    """Malformed webhook call, answered with 400."""


def _parse_user_id(raw: Optional[str]) -> UUID:
    if not raw or not raw.strip():
        raise WebhookRequestError("user_id is required")
    try:
        return UUID(raw.strip())
    except ValueError:
        raise WebhookRequestError("invalid user_id")


async def _parse_payload(request: Request) -> InboundWebhookPayload:
    try:
        body = await request.json()
    except ValueError:
        raise WebhookRequestError("invalid JSON")
    if not isinstance(body, dict):
        raise WebhookRequestError("invalid JSON")
    try:
        return InboundWebhookPayload.model_validate(body)
    except ValidationError as e:
        raise WebhookRequestError(f"invalid payload: {e.error_count()} errors")


async def _handle_webhook(raw_user_id: Optional[str], request: Request, db: Session):
    try:
        user_id = _parse_user_id(raw_user_id)
        payload = await _parse_payload(request)
    except WebhookRequestError as e:
        logger.warning(f"Rejected webhook: {e}", extra={"context": {"user_id": raw_user_id}})
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(e)})

    try:
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, handle_inbound_message, db, user_id, payload)
    except Exception as e:
        logger.exception("Webhook processing failed", extra={"context": {"user_id": str(user_id)}})
        db.rollback()
        alert_error("Webhook processing failed", {"user_id": str(user_id), "error": str(e)})
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": str(e)})
    return WebhookResponse(status=result)


@router.post("/webhook", response_model=WebhookResponse)
async def handle_webhook(
    request: Request,
    user_id: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    """Gateway webhook with the tenant passed as ?user_id=."""
    return await _handle_webhook(user_id, request, db)


@router.post("/webhook/{user_id}", response_model=WebhookResponse)
async def handle_webhook_direct(user_id: str, request: Request, db: Session = Depends(get_db)):
    return await _handle_webhook(user_id, request, db)


@router.get("/webhook/{user_id}")
async def handle_webhook_probe(user_id: str):
    """Health probe for gateway UI checks; real webhooks must use POST."""
    return {"ok": True, "message": "Use POST with JSON payload", "user_id": user_id}
