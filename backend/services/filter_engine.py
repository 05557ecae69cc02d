"""
Filter engine - narrows a listing collection with independent predicates.

Every criterion is optional. ``None`` means "not set"; the string "all" is the
no-filter sentinel for the choice fields (make, model, mileage rating, quality
tier). Stages run in a fixed order and compose by AND:

    make -> model -> year range -> price range -> mileage
         -> mileage rating -> quality tier -> search

The set of survivors does not depend on the order; the order is fixed so the
pipeline is easy to trace.
"""

from typing import Callable, Iterable, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from backend.services.errors import CriteriaValidationError
from backend.services.listing import Listing
from backend.services.scoring import quality_tier
from backend.services.sort_engine import collation_key

ALL = "all"


class FilterCriteria(BaseModel):
    make: Literal["Toyota", "Honda", "all"] | None = None
    model: str | None = Field(None, min_length=1, max_length=100)
    year_min: int | None = Field(None, ge=1900, le=2100)
    year_max: int | None = Field(None, ge=1900, le=2100)
    price_min: int | None = Field(None, ge=0)
    price_max: int | None = Field(None, ge=0)
    mileage_max: int | None = Field(None, ge=0)
    mileage_rating: Literal["excellent", "good", "acceptable", "all"] | None = None
    quality_tier: Literal["top_pick", "good_buy", "caution", "all"] | None = None
    search: str | None = Field(None, max_length=100)

    model_config = {"frozen": True, "extra": "forbid"}

    @field_validator("search")
    @classmethod
    def _blank_search_is_unset(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()

    @model_validator(mode="after")
    def _check_ranges(self) -> "FilterCriteria":
        if self.year_min is not None and self.year_max is not None and self.year_min > self.year_max:
            raise ValueError("year_min must not exceed year_max")
        if self.price_min is not None and self.price_max is not None and self.price_min > self.price_max:
            raise ValueError("price_min must not exceed price_max")
        return self

    @classmethod
    def parse(cls, **values) -> "FilterCriteria":
        """Build criteria, converting pydantic errors into field-level reasons."""
        try:
            return cls(**values)
        except ValidationError as exc:
            raise CriteriaValidationError.from_pydantic(exc) from exc

    def active_fields(self) -> list[str]:
        """Names of the criteria that actually narrow the collection."""
        active = []
        for name in CRITERIA_FIELDS:
            value = getattr(self, name)
            if value is None or value == ALL:
                continue
            active.append(name)
        return active


CRITERIA_FIELDS = (
    "make",
    "model",
    "year_min",
    "year_max",
    "price_min",
    "price_max",
    "mileage_max",
    "mileage_rating",
    "quality_tier",
    "search",
)


def apply_filters(listings: Iterable[Listing], criteria: FilterCriteria) -> list[Listing]:
    """Apply every active criterion; relative order of survivors is unchanged."""
    active = set(criteria.active_fields())
    filtered = list(listings)
    for _name, stage in FILTER_STAGES:
        filtered = stage(filtered, criteria, active)
    return filtered


def active_filter_count(criteria: FilterCriteria) -> int:
    return len(criteria.active_fields())


def unique_values(listings: Iterable[Listing]) -> dict:
    """Distinct makes, models and years for filter dropdowns."""
    listings = list(listings)
    makes = sorted({v.make for v in listings}, key=collation_key)
    models = sorted({v.model for v in listings}, key=collation_key)
    years = sorted({v.year for v in listings}, reverse=True)
    return {"makes": makes, "models": models, "years": years}


# --- Stages ---

def filter_by_make(listings: list[Listing], criteria: FilterCriteria, active: set[str]) -> list[Listing]:
    if "make" not in active:
        return listings
    return [v for v in listings if v.make == criteria.make]


def filter_by_model(listings: list[Listing], criteria: FilterCriteria, active: set[str]) -> list[Listing]:
    if "model" not in active:
        return listings
    return [v for v in listings if v.model == criteria.model]


def filter_by_year_range(listings: list[Listing], criteria: FilterCriteria, active: set[str]) -> list[Listing]:
    filtered = listings
    if "year_min" in active:
        filtered = [v for v in filtered if v.year >= criteria.year_min]
    if "year_max" in active:
        filtered = [v for v in filtered if v.year <= criteria.year_max]
    return filtered


def filter_by_price_range(listings: list[Listing], criteria: FilterCriteria, active: set[str]) -> list[Listing]:
    filtered = listings
    if "price_min" in active:
        filtered = [v for v in filtered if v.price >= criteria.price_min]
    if "price_max" in active:
        filtered = [v for v in filtered if v.price <= criteria.price_max]
    return filtered


def filter_by_mileage(listings: list[Listing], criteria: FilterCriteria, active: set[str]) -> list[Listing]:
    if "mileage_max" not in active:
        return listings
    return [v for v in listings if v.mileage <= criteria.mileage_max]


def filter_by_mileage_rating(listings: list[Listing], criteria: FilterCriteria, active: set[str]) -> list[Listing]:
    if "mileage_rating" not in active:
        return listings
    return [v for v in listings if v.mileage_rating == criteria.mileage_rating]


def filter_by_quality_tier(listings: list[Listing], criteria: FilterCriteria, active: set[str]) -> list[Listing]:
    """Tier is derived from the score here, never read from stored data."""
    if "quality_tier" not in active:
        return listings
    return [v for v in listings if quality_tier(v.priority_score) == criteria.quality_tier]


def filter_by_search(listings: list[Listing], criteria: FilterCriteria, active: set[str]) -> list[Listing]:
    """Case-insensitive substring match on VIN, make, model or year."""
    if "search" not in active:
        return listings
    needle = criteria.search.lower()
    return [
        v for v in listings
        if needle in v.vin.lower()
        or needle in v.make.lower()
        or needle in v.model.lower()
        or needle in str(v.year)
    ]


StageFn = Callable[[list[Listing], FilterCriteria, set[str]], list[Listing]]

FILTER_STAGES: tuple[tuple[str, StageFn], ...] = (
    ("make", filter_by_make),
    ("model", filter_by_model),
    ("year_range", filter_by_year_range),
    ("price_range", filter_by_price_range),
    ("mileage", filter_by_mileage),
    ("mileage_rating", filter_by_mileage_rating),
    ("quality_tier", filter_by_quality_tier),
    ("search", filter_by_search),
)
