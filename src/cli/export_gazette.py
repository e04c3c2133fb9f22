"""
Batch export: scrape the gazette once and write the synthesized tasks to JSON.

No deduplication is applied; every entry on the page becomes one task.
Exits 0 with a logged count, 1 if the output file cannot be written.
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from extraction.entry_extractor import EntryExtractor
from gazette_tracker.models import utc_now
from synthesis.task_synthesizer import synthesize_all

logger = logging.getLogger(__name__)

GAZETTE_EXPORT_PATH = os.getenv("GAZETTE_EXPORT_PATH", "data/gazette-tasks.json")


def export_tasks(extractor: EntryExtractor, path: str = GAZETTE_EXPORT_PATH) -> int:
    """Write the synthesized tasks to `path` and return how many were written."""
    entries = extractor.fetch_entries()
    drafts = synthesize_all(entries, utc_now(), extractor.base_url)

    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(
        json.dumps([d.model_dump(mode="json") for d in drafts], ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    return len(drafts)


def main(extractor: Optional[EntryExtractor] = None, path: str = GAZETTE_EXPORT_PATH) -> int:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    try:
        count = export_tasks(extractor or EntryExtractor(), path)
    except OSError as e:
        logger.error(f"Failed to write gazette tasks to {path}: {e}")
        return 1

    logger.info(f"Successfully extracted {count} tasks from the gazette")
    return 0


if __name__ == "__main__":
    sys.exit(main())
