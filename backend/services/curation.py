"""
Curation orchestrator - one request from query options to a page of listings.

Each run walks a small state machine:

    idle -> resolving -> filtering -> sorting -> paginating -> done
                 \\-> errored

``errored`` is only reachable while resolving (every source failed). The
filter, sort and paginate stages are pure, so nothing after resolution can
fail on valid input. Aggregate stats are computed over the filtered
collection before it is paginated.
"""

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum

from pydantic import BaseModel, Field, ValidationError

from backend.config.settings import get_settings
from backend.services.errors import CriteriaValidationError, InvariantViolationError
from backend.services.filter_engine import FilterCriteria, active_filter_count, apply_filters, unique_values
from backend.services.listing import Listing, QUALITY_TIERS, listing_to_dict
from backend.services.pagination import (
    DEFAULT_PAGE_SIZE,
    PAGE_SIZE_OPTIONS,
    PaginationMeta,
    page_numbers,
    paginate,
)
from backend.services.scoring import TIER_DESCRIPTIONS, TIER_LABELS
from backend.services.sort_engine import SortField, SortOrder, SortState, sort_listings
from backend.services.source_resolver import SourceResolver

logger = logging.getLogger(__name__)


class CurationQuery(BaseModel):
    filters: FilterCriteria = Field(default_factory=FilterCriteria)
    sort_field: SortField = "priority"
    sort_order: SortOrder = "desc"
    page: int = 1
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=100)

    model_config = {"frozen": True, "extra": "forbid"}

    @classmethod
    def parse(cls, **values) -> "CurationQuery":
        """Build a query from flat options; filter keys go into ``filters``."""
        filter_values = {k: values.pop(k) for k in list(values) if k in FilterCriteria.model_fields}
        try:
            return cls(filters=FilterCriteria(**filter_values), **values)
        except ValidationError as exc:
            raise CriteriaValidationError.from_pydantic(exc) from exc

    @property
    def sort(self) -> SortState:
        return SortState(field=self.sort_field, order=self.sort_order)


class CurationStage(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    FILTERING = "filtering"
    SORTING = "sorting"
    PAGINATING = "paginating"
    DONE = "done"
    ERRORED = "errored"


_TRANSITIONS = {
    CurationStage.IDLE: {CurationStage.RESOLVING},
    CurationStage.RESOLVING: {CurationStage.FILTERING, CurationStage.ERRORED},
    CurationStage.FILTERING: {CurationStage.SORTING},
    CurationStage.SORTING: {CurationStage.PAGINATING},
    CurationStage.PAGINATING: {CurationStage.DONE},
    CurationStage.DONE: set(),
    CurationStage.ERRORED: set(),
}


class CurationRun:
    """Stage tracker for a single request."""

    def __init__(self):
        self.stage = CurationStage.IDLE
        self.history = [CurationStage.IDLE]

    def advance(self, stage: CurationStage) -> None:
        if stage not in _TRANSITIONS[self.stage]:
            raise InvariantViolationError(f"Illegal curation transition {self.stage.value} -> {stage.value}")
        self.stage = stage
        self.history.append(stage)


@dataclass
class CurationResult:
    page: list[Listing]
    pagination: PaginationMeta
    filter_summary: dict
    stats: dict
    source: str | None = None
    degraded: bool = False
    error: str | None = None
    stages: list[str] = field(default_factory=list)
    page_numbers: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "listings": [listing_to_dict(v) for v in self.page],
            "pagination": {**asdict(self.pagination), "page_numbers": self.page_numbers},
            "filter_summary": self.filter_summary,
            "stats": self.stats,
            "source": self.source,
            "degraded": self.degraded,
            "error": self.error,
        }


def tier_stats(listings: list[Listing]) -> dict:
    by_tier = {tier: 0 for tier in QUALITY_TIERS}
    for listing in listings:
        by_tier[listing.quality_tier] += 1
    return {"total": len(listings), "by_tier": by_tier}


class CurationService:
    def __init__(self, resolver: SourceResolver, max_visible_pages: int | None = None):
        self.resolver = resolver
        self.max_visible_pages = max_visible_pages or get_settings().max_visible_pages

    async def curate(self, query: CurationQuery | None = None) -> CurationResult:
        query = query or CurationQuery()
        criteria = query.filters
        run = CurationRun()

        run.advance(CurationStage.RESOLVING)
        collection = await self.resolver.resolve_collection(criteria, query.sort)
        summary = {"active_count": active_filter_count(criteria), "active_fields": criteria.active_fields()}

        if collection.error:
            run.advance(CurationStage.ERRORED)
            logger.error("Curation failed: %s", collection.error)
            empty = paginate([], 1, query.page_size)
            return CurationResult(
                page=[],
                pagination=empty.meta,
                filter_summary=summary,
                stats=tier_stats([]),
                source=None,
                degraded=True,
                error=collection.error,
                stages=[stage.value for stage in run.history],
            )

        run.advance(CurationStage.FILTERING)
        filtered = apply_filters(collection.listings, criteria)

        run.advance(CurationStage.SORTING)
        ordered = sort_listings(filtered, query.sort_field, query.sort_order)

        run.advance(CurationStage.PAGINATING)
        result = paginate(ordered, query.page, query.page_size)

        run.advance(CurationStage.DONE)
        logger.info(
            "Curated %d of %d listings from %s (page %d/%d)",
            len(filtered), len(collection.listings), collection.source,
            result.meta.current_page, result.meta.total_pages,
        )
        return CurationResult(
            page=result.items,
            pagination=result.meta,
            filter_summary=summary,
            stats=tier_stats(filtered),
            source=collection.source,
            degraded=collection.degraded,
            error=None,
            stages=[stage.value for stage in run.history],
            page_numbers=page_numbers(result.meta.current_page, result.meta.total_pages, self.max_visible_pages),
        )

    async def filter_options(self) -> dict:
        """Distinct makes, models and years across the whole resolved collection, plus page sizes and tiers."""
        collection = await self.resolver.resolve_collection()
        options = unique_values(collection.listings)
        options["page_sizes"] = list(PAGE_SIZE_OPTIONS)
        options["tiers"] = [
            {"value": tier, "label": TIER_LABELS[tier], "description": TIER_DESCRIPTIONS[tier]}
            for tier in QUALITY_TIERS
        ]
        options["source"] = collection.source
        return options

    async def lookup(self, vin: str) -> Listing | None:
        return await self.resolver.resolve_by_vin(vin)
