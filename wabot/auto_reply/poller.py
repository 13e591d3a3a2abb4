"""
Scheduled auto-reply cycles.

Runs ``AutoReplyService.run_cycle`` for each registered connector on a
fixed interval. A tick that finds the previous cycle still running is
skipped rather than queued.
"""

import asyncio
from typing import Any

from loguru import logger

from wabot.auto_reply.service import AutoReplyService, CycleInProgress
from wabot.gateway.client import GatewayError


class AutoReplyPoller:
    """Background polling loop per connector."""

    def __init__(self, service: AutoReplyService, interval_seconds: float = 10.0):
        self.service = service
        self.interval_seconds = interval_seconds
        self._tasks: dict[str, asyncio.Task] = {}
        self._ticks: dict[str, int] = {}

    def start(self, connector_id: str, api_key: str) -> bool:
        """
        Start polling a connector.

        Returns:
            False if the connector was already being polled.
        """
        if self.is_running(connector_id):
            return False

        self._ticks[connector_id] = 0
        self._tasks[connector_id] = asyncio.create_task(
            self._run(connector_id, api_key),
            name=f"auto-reply:{connector_id}",
        )
        logger.info(f"Auto-reply poller started for {connector_id} (every {self.interval_seconds}s)")
        return True

    async def _run(self, connector_id: str, api_key: str) -> None:
        while True:
            await self.tick(connector_id, api_key)
            await asyncio.sleep(self.interval_seconds)

    async def tick(self, connector_id: str, api_key: str) -> None:
        """Run one cycle, logging instead of raising."""
        self._ticks[connector_id] = self._ticks.get(connector_id, 0) + 1
        try:
            summary = await self.service.run_cycle(connector_id, api_key)
            if summary.replies_sent_count:
                logger.info(f"Poller {connector_id}: {summary.replies_sent_count} replies")
        except CycleInProgress:
            logger.debug(f"Poller {connector_id}: previous cycle still running, skipping")
        except GatewayError as e:
            logger.warning(f"Poller {connector_id}: {e.message}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Poller {connector_id} error: {e}")

    async def stop(self, connector_id: str) -> bool:
        """
        Stop polling a connector.

        Returns:
            False if the connector was not being polled.
        """
        task = self._tasks.pop(connector_id, None)
        if task is None:
            return False

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info(f"Auto-reply poller stopped for {connector_id}")
        return True

    async def stop_all(self) -> None:
        """Stop every poller."""
        for connector_id in list(self._tasks):
            await self.stop(connector_id)

    def is_running(self, connector_id: str) -> bool:
        task = self._tasks.get(connector_id)
        return task is not None and not task.done()

    def list_connectors(self) -> list[str]:
        return sorted(c for c in self._tasks if self.is_running(c))

    def get_stats(self) -> dict[str, Any]:
        """Get poller statistics."""
        return {
            "interval_seconds": self.interval_seconds,
            "connectors": {
                connector_id: {
                    "running": self.is_running(connector_id),
                    "ticks": self._ticks.get(connector_id, 0),
                }
                for connector_id in self._tasks
            },
        }
