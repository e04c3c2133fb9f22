import asyncio
import logging
import os

from api.metrics import record_ingestion
from ingestion.orchestrator import IngestionOrchestrator

logger = logging.getLogger(__name__)

# 0 disables the scheduled run; ingestion is then only triggered via POST /gazette/refresh.
GAZETTE_REFRESH_INTERVAL_S = float(os.getenv("GAZETTE_REFRESH_INTERVAL_S", "0"))


async def _ingestion_worker(
    orchestrator: IngestionOrchestrator,
    interval_s: float = GAZETTE_REFRESH_INTERVAL_S,
) -> None:
    """Background worker that runs gazette ingestion on a fixed interval."""
    logger.info(f"Gazette ingestion worker started (interval {interval_s}s)")

    while True:
        try:
            report = await orchestrator.run()
            record_ingestion(report)
            if report.new_entries:
                logger.info(f"Scheduled ingestion stored {report.new_entries} new tasks")
        except Exception as e:
            # No retry; the next tick is the recovery path.
            logger.exception(f"Scheduled gazette ingestion failed: {e}")

        await asyncio.sleep(interval_s)
