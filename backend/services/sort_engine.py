"""
Sort engine - orders a listing collection by one of a closed set of fields.

Each field has a natural ascending comparison, optionally followed by a
secondary tie-break:

    priority      score, then mileage (lower first)
    quality_tier  tier rank, then score (higher first within a tier)
    price / mileage / year / date / make / model   no tie-break

``desc`` flips the sign of the combined comparison. Python's sort is stable,
so listings that still compare equal keep their input order.
"""

import unicodedata
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Callable, Iterable, Literal

from backend.services.listing import Listing

SortField = Literal["priority", "quality_tier", "price", "mileage", "year", "make", "model", "date"]
SortOrder = Literal["asc", "desc"]

SORT_FIELDS: tuple[str, ...] = ("priority", "quality_tier", "price", "mileage", "year", "make", "model", "date")

SORT_LABELS: dict[str, str] = {
    "priority": "Priority Score",
    "quality_tier": "Quality Tier",
    "price": "Price",
    "mileage": "Mileage",
    "year": "Year",
    "make": "Make",
    "model": "Model",
    "date": "Date Added",
}

TIER_RANK: dict[str, int] = {"caution": 0, "good_buy": 1, "top_pick": 2}


@dataclass(frozen=True)
class SortState:
    field: str = "priority"
    order: str = "desc"


def default_sort() -> SortState:
    return SortState(field="priority", order="desc")


def toggle_sort(current: SortState, field: str) -> SortState:
    """Same column flips the order; a new column starts ascending."""
    if current.field == field:
        return SortState(field=field, order="desc" if current.order == "asc" else "asc")
    return SortState(field=field, order="asc")


def sort_label(field: str) -> str:
    return SORT_LABELS.get(field, field)


def collation_key(text: str) -> tuple[str, str]:
    """Locale-style key: accents and case are ignored first, then used to break ties."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return (base.casefold(), text or "")


def sort_listings(listings: Iterable[Listing], field: str = "priority", order: str = "desc") -> list[Listing]:
    """Return a new, sorted list. The input is never mutated."""
    if field not in SORT_FIELDS:
        raise ValueError(f"Unsupported sort field: {field}")
    if order not in ("asc", "desc"):
        raise ValueError(f"Unsupported sort order: {order}")

    compare = _COMPARATORS[field]
    sign = -1 if order == "desc" else 1
    return sorted(listings, key=cmp_to_key(lambda a, b: sign * compare(a, b)))


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def _compare_priority(a: Listing, b: Listing) -> int:
    return _cmp(a.priority_score, b.priority_score) or _cmp(a.mileage, b.mileage)


def _compare_quality_tier(a: Listing, b: Listing) -> int:
    primary = _cmp(TIER_RANK[a.quality_tier], TIER_RANK[b.quality_tier])
    return primary or _cmp(b.priority_score, a.priority_score)


def _compare_price(a: Listing, b: Listing) -> int:
    return _cmp(a.price, b.price)


def _compare_mileage(a: Listing, b: Listing) -> int:
    return _cmp(a.mileage, b.mileage)


def _compare_year(a: Listing, b: Listing) -> int:
    return _cmp(a.year, b.year)


def _compare_make(a: Listing, b: Listing) -> int:
    return _cmp(collation_key(a.make), collation_key(b.make))


def _compare_model(a: Listing, b: Listing) -> int:
    return _cmp(collation_key(a.model), collation_key(b.model))


def _compare_date(a: Listing, b: Listing) -> int:
    return _cmp(a.created_at, b.created_at)


_COMPARATORS: dict[str, Callable[[Listing, Listing], int]] = {
    "priority": _compare_priority,
    "quality_tier": _compare_quality_tier,
    "price": _compare_price,
    "mileage": _compare_mileage,
    "year": _compare_year,
    "make": _compare_make,
    "model": _compare_model,
    "date": _compare_date,
}
