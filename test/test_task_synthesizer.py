from datetime import timedelta

from gazette_tracker.models import Category, GazetteEntry, Priority, Status
from synthesis.task_synthesizer import synthesize, synthesize_all

BASE = "https://www.gazette.gov.mv"


def _entry(title="Budget Circular", url="/notices/7", date="2024-03-15"):
    return GazetteEntry(title=title, relative_url=url, published_date_text=date)


def test_synthesize_fields(fixed_now):
    draft = synthesize(_entry(), fixed_now, BASE)
    assert draft.title == "Budget Circular"
    assert draft.source == "https://www.gazette.gov.mv/notices/7"
    assert draft.description == (
        "Gazette notice from 2024-03-15. Source URL: https://www.gazette.gov.mv/notices/7"
    )
    assert draft.category == Category.FINANCIAL
    assert draft.priority == Priority.MEDIUM
    assert draft.status == Status.PENDING
    assert draft.has_info_session is False
    assert draft.requires_registration is False


def test_synthesize_schedule_offsets(fixed_now):
    draft = synthesize(_entry(), fixed_now, BASE)
    assert draft.deadline - fixed_now == timedelta(days=7)
    assert draft.pre_submission_date - fixed_now == timedelta(days=3)
    assert draft.deadline - draft.pre_submission_date == timedelta(days=4)


def test_synthesize_all_shares_one_timestamp(fixed_now):
    drafts = synthesize_all([_entry(url="/a"), _entry(url="/b")], fixed_now, BASE)
    assert {d.deadline for d in drafts} == {fixed_now + timedelta(days=7)}
    assert [d.source for d in drafts] == [f"{BASE}/a", f"{BASE}/b"]


def test_synthesize_all_skips_blank_title(fixed_now, caplog):
    entries = [_entry(title="Budget Law", url="/a"), _entry(title="", url="/blank"), _entry(url="/c")]
    drafts = synthesize_all(entries, fixed_now, BASE)

    assert [d.source for d in drafts] == [f"{BASE}/a", f"{BASE}/c"]
    assert "Skipping gazette entry '/blank'" in caplog.text
