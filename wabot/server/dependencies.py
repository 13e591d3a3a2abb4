"""
FastAPI dependency injection utilities.

Provides dependencies for:
- Config access
- Auto-reply service and poller access
"""

from typing import Annotated

from fastapi import Depends, Request

from wabot.auto_reply.poller import AutoReplyPoller
from wabot.auto_reply.service import AutoReplyService
from wabot.config.schema import Config


def get_config(request: Request) -> Config:
    """Get config from app state."""
    return request.app.state.config


def get_service(request: Request) -> AutoReplyService:
    """Get auto-reply service from app state."""
    return request.app.state.service


def get_poller(request: Request) -> AutoReplyPoller:
    """Get poller from app state."""
    return request.app.state.poller


# Type aliases for dependency injection
ConfigDep = Annotated[Config, Depends(get_config)]
ServiceDep = Annotated[AutoReplyService, Depends(get_service)]
PollerDep = Annotated[AutoReplyPoller, Depends(get_poller)]
