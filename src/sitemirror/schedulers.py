"""Background coroutines: startup status recheck and periodic resync."""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from sitemirror.state import AppState

log = structlog.get_logger()


def _jittered_delay(base_seconds: int) -> float:
    return base_seconds * random.uniform(0.8, 1.2)


async def run_status_recheck(state: AppState) -> None:
    """Rebuild the transient status map from the document store for every known URL."""
    urls = [url for site in state.session.sites for url in site.urls()]
    if not urls:
        return
    await state.orchestrator.recheck_statuses(urls)


async def run_resync_scheduler(state: AppState) -> None:
    """Resync every site on the configured interval (HTTP long-running mode only).

    stdio sessions are short-lived and resync on request instead.
    """
    if state.settings.server.transport != "http":
        return

    interval_seconds = state.settings.sync.resync_interval_hours * 3600
    while True:
        await asyncio.sleep(_jittered_delay(interval_seconds))
        for site in list(state.session.sites):
            try:
                outcome = await state.session.resync(site)
            except Exception:
                log.warning("resync_scheduler_error", site_id=site.id, exc_info=True)
                continue
            log.info("scheduled_resync_finished", site_id=site.id, outcome=outcome)
