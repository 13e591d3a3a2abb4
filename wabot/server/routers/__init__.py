"""
FastAPI routers for WaBot API.

- system: Status, health, config summary
- whatsapp: Auto-reply cycles, pollers, webhook
"""

from wabot.server.routers.system import router as system_router
from wabot.server.routers.whatsapp import router as whatsapp_router

__all__ = [
    "system_router",
    "whatsapp_router",
]
