from __future__ import annotations

from typing import AbstractSet, Iterable, List

from gazette_tracker.models import TaskDraft


def admit(drafts: Iterable[TaskDraft], existing_sources: AbstractSet[str]) -> List[TaskDraft]:
    """
    Keep only drafts whose source is not already persisted.

    `existing_sources` is a snapshot taken before the call. A source repeated
    within `drafts` is admitted once (first occurrence wins).
    """
    seen = set(existing_sources)
    admitted: List[TaskDraft] = []
    for draft in drafts:
        if draft.source in seen:
            continue
        seen.add(draft.source)
        admitted.append(draft)
    return admitted
