"""Periodic warning-expiry sweep."""

from __future__ import annotations

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .service import MemberService

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "warning-expiry-sweep"


class ExpiryScheduler:
    """Runs the expiry sweep on a fixed interval inside the bot's event loop."""

    def __init__(self, service: MemberService, *, interval_seconds: Optional[float] = None) -> None:
        self.service = service
        self.interval_seconds = interval_seconds or service.settings.sweep_interval_seconds
        self.scheduler = AsyncIOScheduler()
        self.started = False

    def start(self) -> None:
        self.scheduler.add_job(
            self._run_sweep,
            "interval",
            seconds=self.interval_seconds,
            id=SWEEP_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.start()
        self.started = True
        logger.info("Started warning-expiry sweep every %s seconds", self.interval_seconds)

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False

    async def _run_sweep(self) -> None:
        try:
            restored = await self.service.sweep_expired_warnings()
        except Exception:
            logger.exception("Warning-expiry sweep failed")
            return
        if restored:
            logger.info("Restored membership for %d members", len(restored))


__all__ = ["AsyncIOScheduler", "ExpiryScheduler", "SWEEP_JOB_ID"]
