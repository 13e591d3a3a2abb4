"""
WhatsApp auto-reply routes for WaBot API.

Provides:
- /api/whatsapp/auto-reply - Run a cycle / service status
- /api/whatsapp/auto-reply/poller - Manage background pollers
- /api/whatsapp/webhook - Receive single-message deliveries
"""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from wabot.auto_reply.service import CycleInProgress
from wabot.gateway.client import GatewayError
from wabot.server.dependencies import ConfigDep, PollerDep, ServiceDep

router = APIRouter()


class AutoReplyRequest(BaseModel):
    """Auto-reply cycle request body."""
    connectorID: str | None = None
    apiKey: str | None = None
    enableAutoReply: bool = False


class PollerRequest(BaseModel):
    """Poller start request body."""
    connectorID: str | None = None
    apiKey: str | None = None


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


@router.post("/auto-reply")
async def run_auto_reply(body: AutoReplyRequest, service: ServiceDep):
    """
    Check a connector for new messages and reply to them.

    Returns the cycle summary (counts and per-message outcomes).
    """
    if not body.connectorID or not body.apiKey:
        return _error("Missing connectorID or apiKey", status.HTTP_400_BAD_REQUEST)

    if not body.enableAutoReply:
        return JSONResponse({"status": "auto_reply_disabled"})

    try:
        summary = await service.run_cycle(body.connectorID, body.apiKey)
    except CycleInProgress as e:
        return _error(str(e), status.HTTP_409_CONFLICT)
    except GatewayError as e:
        logger.warning(f"Auto-reply upstream error: {e.message}")
        return _error(e.message, e.status_code or status.HTTP_502_BAD_GATEWAY)
    except Exception as e:
        logger.error(f"Auto-reply error: {e}")
        return _error(str(e) or "Auto-reply failed", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return JSONResponse(summary.to_dict())


@router.get("/auto-reply")
async def auto_reply_status(service: ServiceDep):
    """Status check for the auto-reply service."""
    return JSONResponse({
        "status": "active",
        "processedMessagesCount": service.processed_messages_count,
        "message": "Auto-reply service is running",
    })


@router.post("/auto-reply/poller")
async def start_poller(body: PollerRequest, poller: PollerDep, config: ConfigDep):
    """Start polling a connector in the background."""
    if not body.connectorID or not body.apiKey:
        return _error("Missing connectorID or apiKey", status.HTTP_400_BAD_REQUEST)

    if not config.auto_reply.enabled:
        return JSONResponse({"status": "auto_reply_disabled"})

    started = poller.start(body.connectorID, body.apiKey)
    return JSONResponse({
        "status": "started" if started else "already_running",
        "connector_id": body.connectorID,
        "interval_seconds": poller.interval_seconds,
    })


@router.get("/auto-reply/poller")
async def list_pollers(poller: PollerDep):
    """List connectors being polled."""
    return JSONResponse({
        "connectors": poller.list_connectors(),
        "interval_seconds": poller.interval_seconds,
    })


@router.delete("/auto-reply/poller/{connector_id}")
async def stop_poller(connector_id: str, poller: PollerDep):
    """Stop polling a connector."""
    stopped = await poller.stop(connector_id)
    if not stopped:
        return _error(f"No poller running for {connector_id}", status.HTTP_404_NOT_FOUND)
    return JSONResponse({"status": "stopped", "connector_id": connector_id})


@router.post("/webhook")
async def receive_webhook(request: Request, service: ServiceDep):
    """
    Receive a message delivery from the events service and reply to it.
    """
    try:
        payload = await request.json()
    except ValueError:
        logger.info("Webhook body is not JSON, skipping")
        return JSONResponse({"status": "skipped", "reason": "invalid_payload"})

    logger.debug(f"Webhook received: {payload}")

    try:
        outcome = await service.handle_webhook(payload)
    except Exception as e:
        logger.error(f"Webhook error: {e}")
        return _error(str(e) or "Webhook processing failed", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return JSONResponse(outcome.to_dict())


@router.get("/webhook")
async def webhook_status(config: ConfigDep):
    """Health check / verification for the webhook."""
    return JSONResponse({
        "status": "active",
        "message": "WhatsApp automation webhook is running",
        "base_url": config.platform.base_url,
    })
