"""
System routes for WaBot API.

Provides:
- /api/system/status - Service, ledger and poller status
- /api/system/health - Lightweight health check
- /api/system/config - Sanitized configuration summary
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from wabot import __version__
from wabot.server.dependencies import ConfigDep, PollerDep, ServiceDep

router = APIRouter()


@router.get("/status")
async def get_status(service: ServiceDep, poller: PollerDep, config: ConfigDep):
    """
    Get comprehensive service status.

    Returns:
        - version: WaBot version
        - auto_reply_enabled / llm_enabled: feature flags
        - service: cycle counters and per-connector ledgers
        - poller: polled connectors and tick counts
    """
    return JSONResponse({
        "version": __version__,
        "auto_reply_enabled": config.auto_reply.enabled,
        "llm_enabled": config.llm.enabled,
        "service": service.get_status(),
        "poller": poller.get_stats(),
    })


@router.get("/health")
async def health_check():
    """Simple OK status for load balancers and monitoring."""
    return JSONResponse({"status": "ok"})


@router.get("/config")
async def get_config_summary(config: ConfigDep):
    """
    Get sanitized configuration summary.

    Does not expose secrets or API keys.
    """
    return JSONResponse({
        "platform": {
            "base_url": config.platform.base_url,
            "has_api_key": bool(config.platform.api_key),
        },
        "auto_reply": {
            "enabled": config.auto_reply.enabled,
            "lookback": config.auto_reply.lookback,
            "ledger_capacity": config.auto_reply.ledger_capacity,
            "poll_interval_seconds": config.auto_reply.poll_interval_seconds,
            "rules": [rule.name for rule in config.auto_reply.rules],
        },
        "llm": {
            "enabled": config.llm.enabled,
            "backend": config.llm.backend,
            "model": config.llm.model,
        },
    })
