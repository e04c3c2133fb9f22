import logging
import os
from typing import Callable, List, Optional

import requests
from bs4 import BeautifulSoup

from gazette_tracker.errors import FetchFailure
from gazette_tracker.models import GazetteEntry

logger = logging.getLogger(__name__)

GAZETTE_URL = os.getenv("GAZETTE_URL", "https://www.gazette.gov.mv").strip()
GAZETTE_FETCH_TIMEOUT_S = float(os.getenv("GAZETTE_FETCH_TIMEOUT_S", "10"))

ITEM_SELECTOR = ".gazette-item"
TITLE_SELECTOR = ".gazette-title"
DATE_SELECTOR = ".gazette-date"


def fetch_gazette_html(url: str = GAZETTE_URL, timeout_s: float = GAZETTE_FETCH_TIMEOUT_S) -> str:
    """Fetch the publication page and return its body as text.

    Raises FetchFailure on network errors and non-success responses.
    """
    try:
        resp = requests.get(url, timeout=timeout_s)
        resp.raise_for_status()
        return resp.text
    except requests.RequestException as e:
        raise FetchFailure(f"GET {url} failed: {e}") from e


def _text(node, selector: str) -> str:
    found = node.select_one(selector)
    return found.get_text().strip() if found is not None else ""


def extract_entries(html: str, item_selector: str = ITEM_SELECTOR) -> List[GazetteEntry]:
    """
    Parse gazette listing markup into entries.

    For every node matching `item_selector`: the title text, the href of the
    first anchor ("" when missing) and the date text, all stripped.
    """
    if not html:
        return []

    soup = BeautifulSoup(html, "html.parser")
    entries: List[GazetteEntry] = []

    for node in soup.select(item_selector):
        anchor = node.find("a")
        href = anchor.get("href") if anchor is not None else None
        entries.append(
            GazetteEntry(
                title=_text(node, TITLE_SELECTOR),
                relative_url=(href or "").strip(),
                published_date_text=_text(node, DATE_SELECTOR),
            )
        )

    return entries


class EntryExtractor:
    """Fetches the gazette page and turns it into entries.

    The page fetcher is injected so the service, the scheduled worker and the
    export script all share one extraction path.
    """

    def __init__(
        self,
        fetch_page: Optional[Callable[[], str]] = None,
        base_url: str = GAZETTE_URL,
        item_selector: str = ITEM_SELECTOR,
    ):
        self.base_url = base_url
        self.item_selector = item_selector
        self._fetch_page = fetch_page or (lambda: fetch_gazette_html(base_url))

    def fetch_page(self) -> str:
        """Fetch stage. A failed fetch is logged and yields an empty page."""
        try:
            return self._fetch_page()
        except FetchFailure as e:
            logger.warning("Gazette fetch failed: %s", e)
        except Exception as e:
            logger.warning("Gazette fetch failed unexpectedly: %s", e)
        return ""

    def parse(self, html: str) -> List[GazetteEntry]:
        """Extract stage. A parse error is logged and yields no entries."""
        try:
            entries = extract_entries(html, self.item_selector)
        except Exception as e:
            logger.warning(f"Failed to parse gazette page: {e}")
            return []

        logger.info(f"Extracted {len(entries)} gazette entries from {self.base_url}")
        return entries

    def fetch_entries(self) -> List[GazetteEntry]:
        """One pass over the page as fetched. Failures yield an empty list."""
        return self.parse(self.fetch_page())
