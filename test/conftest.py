from datetime import datetime, timezone

import pytest

from extraction.entry_extractor import EntryExtractor
from gazette_tracker.errors import FetchFailure

BASE_URL = "https://www.gazette.gov.mv"

GAZETTE_HTML = """
<html><body>
  <div class="gazette-item">
    <a href="/regulations/2024/03/financial"><span class="gazette-title"> New Financial Regulations 2024 </span></a>
    <span class="gazette-date">2024-03-14</span>
  </div>
  <div class="gazette-item">
    <a href="/legal/2024/03/framework"><span class="gazette-title">Legal Framework Updates</span></a>
    <span class="gazette-date"> 2024-03-13 </span>
  </div>
  <div class="gazette-item">
    <a href="/notices/2024/03/registration"><span class="gazette-title">Public Notice: Registration</span></a>
    <span class="gazette-date">2024-03-15</span>
  </div>
</body></html>
"""

MIXED_TITLES_HTML = """
<div class="gazette-item"><a href="/laws/budget"><span class="gazette-title">Budget Law</span></a></div>
<div class="gazette-item"><a href="/notices/blank"><span class="gazette-title">   </span></a></div>
<div class="gazette-item"><a href="/notices/other"><span class="gazette-title">Other notice</span></a></div>
"""

FIXED_NOW = datetime(2024, 3, 16, 12, 0, tzinfo=timezone.utc)


class FakeFetcher:
    """Stands in for the HTTP fetch; counts calls, can fail on demand."""

    def __init__(self, html: str = GAZETTE_HTML, error: Exception = None):
        self.html = html
        self.error = error
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.html


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def extractor_factory():
    def _make(html: str = GAZETTE_HTML, error: Exception = None):
        fetcher = FakeFetcher(html, error)
        return EntryExtractor(fetch_page=fetcher, base_url=BASE_URL)
    return _make


@pytest.fixture
def failing_extractor(extractor_factory):
    return extractor_factory(error=FetchFailure("GET failed: 503"))
