"""
Source resolver - chooses which backing source serves a request.

Sources are tried in a fixed priority order (primary live store, legacy store,
static fallback dataset), one at a time. A source that raises, times out or
returns nothing hands over to the next one; the failure is logged and
recorded on the outcome, never raised to the caller. Every source returns
fully adapted ``Listing`` objects, so nothing downstream knows where a
listing came from.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Protocol, Sequence

from backend.services.filter_engine import ALL, FilterCriteria, apply_filters
from backend.services.listing import Listing, normalize_vin
from backend.services.listing_stores import ListingStore, SortSpec, StorePredicate
from backend.services.pagination import PaginationMeta, paginate
from backend.services.sort_engine import SortState, default_sort, sort_listings

logger = logging.getLogger(__name__)

# (record, resolved_at, as_of, strict=...) -> Listing | None
Adapter = Callable[..., Listing | None]

ALL_SOURCES_FAILED = "All listing sources are unavailable"

# Sort fields a store can order by natively
_STORE_SORT_FIELDS = {"price": "price", "mileage": "mileage", "year": "year", "date": "created_at"}


class ListingSource(Protocol):
    name: str

    async def try_get(self, vin: str, resolved_at: datetime) -> Listing | None:
        ...

    async def try_query(
        self, criteria: FilterCriteria, sort: SortState | None, resolved_at: datetime
    ) -> list[Listing]:
        ...


class StoreSource:
    """A listing store plus the adapter for its native record shape."""

    def __init__(
        self,
        store: ListingStore,
        adapter: Adapter,
        fetch_limit: int | None = 1000,
        strict: bool = False,
    ):
        self.store = store
        self.adapter = adapter
        self.fetch_limit = fetch_limit
        self.strict = strict

    @property
    def name(self) -> str:
        return self.store.name

    async def try_get(self, vin: str, resolved_at: datetime) -> Listing | None:
        record = await self.store.get(vin)
        if record is None:
            return None
        listing = self.adapter(record, resolved_at, resolved_at.date(), strict=self.strict)
        if listing is None or listing.vin != vin:
            return None
        return listing

    async def try_query(
        self, criteria: FilterCriteria, sort: SortState | None, resolved_at: datetime
    ) -> list[Listing]:
        predicates = store_predicates(criteria) if self.store.supports_predicates else []
        records = await self.store.query(predicates, store_sort_spec(sort), self.fetch_limit, 0)

        as_of = resolved_at.date()
        listings = []
        for record in records:
            listing = self.adapter(record, resolved_at, as_of, strict=self.strict)
            if listing is not None:
                listings.append(listing)

        if not self.store.supports_predicates:
            pushdown = FilterCriteria(make=criteria.make, model=criteria.model)
            listings = apply_filters(listings, pushdown)
        return listings


def store_predicates(criteria: FilterCriteria) -> list[StorePredicate]:
    """Make/model equality predicates a store can evaluate itself."""
    predicates = []
    if criteria.make not in (None, ALL):
        predicates.append(StorePredicate("make", criteria.make))
    if criteria.model not in (None, ALL):
        predicates.append(StorePredicate("model", criteria.model))
    return predicates


def store_sort_spec(sort: SortState | None) -> SortSpec | None:
    if sort is None or sort.field not in _STORE_SORT_FIELDS:
        return None
    return SortSpec(_STORE_SORT_FIELDS[sort.field], descending=sort.order == "desc")


@dataclass
class ResolvedCollection:
    listings: list[Listing]
    source: str | None = None
    failed_sources: list[str] = field(default_factory=list)
    resolved_at: datetime | None = None
    sources_tried: int = 0

    @property
    def degraded(self) -> bool:
        """True when a higher-priority source failed before one succeeded (or none did)."""
        return bool(self.failed_sources)

    @property
    def error(self) -> str | None:
        """Set only when every source raised; a source that answers empty is not a failure."""
        if self.source is None and self.failed_sources and len(self.failed_sources) >= self.sources_tried:
            return ALL_SOURCES_FAILED
        return None


@dataclass
class QueryResolution:
    items: list[Listing]
    total_before_pagination: int
    pagination: PaginationMeta
    source: str | None = None
    degraded: bool = False
    error: str | None = None


class SourceResolver:
    def __init__(self, sources: Sequence[ListingSource], clock: Callable[[], datetime] | None = None):
        if not sources:
            raise ValueError("SourceResolver needs at least one source")
        self.sources = tuple(sources)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def source_names(self) -> list[str]:
        return [source.name for source in self.sources]

    async def resolve_by_vin(self, vin: str) -> Listing | None:
        """First source holding the VIN wins. Unknown VINs resolve to None."""
        vin = normalize_vin(vin)
        if not vin:
            return None
        resolved_at = self._clock()
        for source in self.sources:
            try:
                listing = await source.try_get(vin, resolved_at)
            except Exception as exc:
                logger.warning("Source %s failed for VIN %s, trying next: %s", source.name, vin, exc)
                continue
            if listing is not None:
                logger.debug("VIN %s resolved from %s", vin, source.name)
                return listing
        logger.info("VIN %s not found in any source", vin)
        return None

    async def resolve_collection(
        self, criteria: FilterCriteria | None = None, sort: SortState | None = None
    ) -> ResolvedCollection:
        """Raw (unfiltered beyond make/model) collection from the first usable source."""
        criteria = criteria or FilterCriteria()
        resolved_at = self._clock()
        failed: list[str] = []

        for source in self.sources:
            try:
                listings = await source.try_query(criteria, sort, resolved_at)
            except Exception as exc:
                logger.warning("Source %s unavailable, falling back: %s", source.name, exc)
                failed.append(source.name)
                continue
            if not listings:
                logger.debug("Source %s returned no listings", source.name)
                continue

            listings = dedupe_by_vin(listings)
            logger.info("Resolved %d listings from %s", len(listings), source.name)
            return ResolvedCollection(
                listings=listings,
                source=source.name,
                failed_sources=failed,
                resolved_at=resolved_at,
                sources_tried=len(self.sources),
            )

        if len(failed) == len(self.sources):
            logger.error("Every listing source failed: %s", ", ".join(failed))
        return ResolvedCollection(
            listings=[], source=None, failed_sources=failed, resolved_at=resolved_at, sources_tried=len(self.sources)
        )

    async def resolve_query(
        self,
        criteria: FilterCriteria | None = None,
        sort: SortState | None = None,
        page: int = 1,
        page_size: int = 25,
    ) -> QueryResolution:
        """Resolve, then filter, sort and paginate in one call."""
        criteria = criteria or FilterCriteria()
        sort = sort or default_sort()
        collection = await self.resolve_collection(criteria, sort)

        filtered = apply_filters(collection.listings, criteria)
        ordered = sort_listings(filtered, sort.field, sort.order)
        result = paginate(ordered, page, page_size)
        return QueryResolution(
            items=result.items,
            total_before_pagination=len(filtered),
            pagination=result.meta,
            source=collection.source,
            degraded=collection.degraded,
            error=collection.error,
        )


def dedupe_by_vin(listings: Iterable[Listing]) -> list[Listing]:
    """Keep the first listing seen for each VIN."""
    seen: set[str] = set()
    unique = []
    for listing in listings:
        if listing.vin in seen:
            logger.debug("Dropping duplicate VIN %s", listing.vin)
            continue
        seen.add(listing.vin)
        unique.append(listing)
    return unique
