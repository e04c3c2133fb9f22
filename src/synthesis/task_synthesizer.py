from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, List

from pydantic import ValidationError

from classification.category_classifier import classify
from extraction.entry_extractor import GAZETTE_URL
from gazette_tracker.models import GazetteEntry, Priority, Status, TaskDraft

logger = logging.getLogger(__name__)

DEADLINE_AFTER = timedelta(days=7)
PRE_SUBMISSION_AFTER = timedelta(days=3)


def source_url(base_url: str, relative_url: str) -> str:
    # Plain concatenation: the result is the deduplication key, so no normalization.
    return f"{base_url}{relative_url}"


def synthesize(entry: GazetteEntry, ingestion_time: datetime, base_url: str = GAZETTE_URL) -> TaskDraft:
    """Build the task draft for one gazette entry.

    Every time-derived field comes from the single `ingestion_time`, so the
    deadline is always exactly four days after the pre-submission date.
    """
    source = source_url(base_url, entry.relative_url)
    return TaskDraft(
        title=entry.title,
        description=f"Gazette notice from {entry.published_date_text}. Source URL: {source}",
        category=classify(entry.title),
        deadline=ingestion_time + DEADLINE_AFTER,
        pre_submission_date=ingestion_time + PRE_SUBMISSION_AFTER,
        priority=Priority.MEDIUM,
        status=Status.PENDING,
        source=source,
        has_info_session=False,
        requires_registration=False,
    )


def synthesize_all(
    entries: Iterable[GazetteEntry], ingestion_time: datetime, base_url: str = GAZETTE_URL
) -> List[TaskDraft]:
    """Map entries to drafts sharing one timestamp.

    An entry that cannot form a valid draft (a blank title, say) is logged and
    skipped; the rest of the batch still goes through.
    """
    drafts: List[TaskDraft] = []
    for entry in entries:
        try:
            drafts.append(synthesize(entry, ingestion_time, base_url))
        except ValidationError as e:
            logger.warning(
                f"Skipping gazette entry {entry.relative_url!r}: {e.error_count()} invalid field(s)"
            )
    return drafts
