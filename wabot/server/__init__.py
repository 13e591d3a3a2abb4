"""
WaBot Server Module.

Provides the FastAPI web server with:
- Auto-reply cycle and webhook endpoints
- Background poller management
- System status endpoints
"""

from wabot.server.main import create_app

__all__ = ["create_app"]
