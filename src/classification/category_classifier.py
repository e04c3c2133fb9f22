from __future__ import annotations

from gazette_tracker.models import Category

# Checked in order; the first matching keyword group wins.
CATEGORY_KEYWORDS: tuple[tuple[Category, tuple[str, ...]], ...] = (
    (Category.LEGAL, ("law", "regulation")),
    (Category.FINANCIAL, ("financial", "budget")),
    (Category.ADMINISTRATIVE, ("administrative",)),
    (Category.REGULATORY, ("regulatory",)),
)


def classify(title: str) -> Category:
    """Map a gazette notice title to a category by keyword."""
    lower_title = (title or "").lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(k in lower_title for k in keywords):
            return category
    return Category.OTHER
