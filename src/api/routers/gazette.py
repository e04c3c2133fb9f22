import logging
import time

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_orchestrator
from api.metrics import REQUESTS_TOTAL, REQUEST_LATENCY_SECONDS, record_ingestion
from ingestion.orchestrator import IngestionOrchestrator

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/refresh")
async def fetch_gazette_data(
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
) -> dict:
    """
    Run one gazette ingestion and report how many tasks were created.

    Internal errors are reported as a generic failure, without detail.
    """
    start = time.perf_counter()
    try:
        report = await orchestrator.run()
    except Exception:
        logger.exception("Error in gazette ingestion")
        REQUESTS_TOTAL.labels(endpoint="/gazette/refresh", status="error").inc()
        raise HTTPException(status_code=500, detail="Failed to fetch gazette data")
    finally:
        REQUEST_LATENCY_SECONDS.labels(endpoint="/gazette/refresh").observe(
            time.perf_counter() - start
        )

    record_ingestion(report)
    REQUESTS_TOTAL.labels(endpoint="/gazette/refresh", status="ok").inc()
    return {"newEntries": report.new_entries}


@router.get("/status")
async def ingestion_status(
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
) -> dict:
    return {"phase": orchestrator.phase.value}
