"""
Daily lead rescoring job.

Leads keep the score of their most recent calculation. Scores drift as the
active configuration changes and as historical cohorts grow, so this job
periodically recalculates leads that were never scored or whose cached
score is older than ``rescore_stale_after_days``.

Behavior:
- Selects up to ``max_batch_leads`` stale leads per pass, oldest first
- Scores them through LeadScoringService.batch_score_leads (chunked,
  per-lead errors collected rather than raised)
- Repeats until no stale leads remain or ``max_passes`` is reached

Usage:
    python -m guardforce.jobs.rescore_leads

    # or programmatically
    services = build_services()
    summary = await rescore_stale_leads(services)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from guardforce.core.config import get_settings
from guardforce.core.database import close_db, init_db
from guardforce.core.dependencies import ServiceContainer, build_services


logger = logging.getLogger(__name__)


@dataclass
class RescoreSummary:
    """Outcome of one rescoring run."""
    scored: int = 0
    failed: int = 0
    passes: int = 0
    errors: List[str] = field(default_factory=list)


async def rescore_stale_leads(
    services: ServiceContainer,
    stale_after_days: Optional[int] = None,
    max_passes: int = 10,
) -> RescoreSummary:
    """
    Recalculate scores for unscored or stale leads.

    Args:
        services: Wired services (store, settings, lead scoring).
        stale_after_days: Age of cached score that triggers a rescore.
        max_passes: Upper bound on batch passes in one run.

    Returns:
        RescoreSummary: Counts of scored and failed leads.
    """
    settings = services.settings
    days = stale_after_days if stale_after_days is not None else settings.rescore_stale_after_days
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    summary = RescoreSummary()
    attempted = set()

    for _ in range(max_passes):
        lead_ids = await services.store.list_leads_for_rescoring(cutoff, settings.max_batch_leads)
        # Failed leads keep their stale timestamp; do not retry them in the same run
        lead_ids = [lead_id for lead_id in lead_ids if lead_id not in attempted]
        if not lead_ids:
            break

        attempted.update(lead_ids)
        result = await services.lead_scoring.batch_score_leads(lead_ids)
        summary.passes += 1
        summary.scored += len(result.calculations)
        summary.failed += len(result.errors)
        summary.errors.extend(result.errors)

    logger.info(
        f"Rescoring complete: {summary.scored} scored, {summary.failed} failed "
        f"in {summary.passes} passes"
    )
    return summary


async def run() -> RescoreSummary:
    await init_db()
    try:
        return await rescore_stale_leads(build_services())
    finally:
        await close_db()


def main() -> None:
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run())


if __name__ == "__main__":
    main()
