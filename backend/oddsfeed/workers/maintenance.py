"""Scheduled pipeline housekeeping: change-cache sweep and unmapped-code report."""

import logging

from oddsfeed.services.diagnostics import log_report
from oddsfeed.services.odds_pipeline import OddsPipeline

logger = logging.getLogger("oddsfeed.maintenance")


async def sweep_change_cache(pipeline: OddsPipeline) -> int:
    """Drop change fingerprints older than twice the TTL."""
    removed = pipeline.changes.sweep()
    if removed:
        logger.debug("Change cache sweep removed %d entries, %d left", removed, len(pipeline.changes))
    return removed


async def report_unmapped(pipeline: OddsPipeline, limit: int = 20) -> int:
    """Log the most frequent unmapped market codes and team names."""
    logged = log_report("market codes", pipeline.mapper.unmapped, limit)
    logged += log_report("teams", pipeline.unmapped_teams, limit)
    if not logged:
        logger.debug("No unmapped market codes or teams")
    return logged
