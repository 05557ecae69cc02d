"""Wires stores, sources and services together from settings."""

import logging
from dataclasses import dataclass

import httpx
from sqlalchemy.engine import Engine

from backend.config.settings import Settings
from backend.database.db import create_db_engine, create_session_factory, init_db
from backend.services.adapters import (
    curated_record_to_listing,
    fallback_record_to_listing,
    marketcheck_to_listing,
)
from backend.services.curation import CurationService
from backend.services.listing_stores import HttpListingStore, SqlListingStore, StaticListingStore
from backend.services.review_service import ReviewService
from backend.services.source_resolver import SourceResolver, StoreSource

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    resolver: SourceResolver
    curation: CurationService
    reviews: ReviewService
    engine: Engine | None = None
    http_client: httpx.AsyncClient | None = None

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()
        if self.engine is not None:
            self.engine.dispose()


def build_container(settings: Settings) -> ServiceContainer:
    engine = create_db_engine(settings.database_url, echo=settings.debug)
    if not settings.is_production:
        init_db(engine)  # Production uses: alembic upgrade head
    legacy = SqlListingStore(create_session_factory(engine))
    strict = settings.strict_invariants

    sources = []
    http_client = None
    if settings.primary_store_enabled:
        http_client = httpx.AsyncClient()
        primary = HttpListingStore(
            http_client,
            base_url=settings.primary_store_url,
            table=settings.primary_store_table,
            api_key=settings.primary_store_api_key,
            timeout=settings.primary_store_timeout_seconds,
        )
        sources.append(StoreSource(primary, marketcheck_to_listing, settings.primary_store_fetch_limit, strict=strict))
    else:
        logger.info("No primary store URL configured; serving from legacy and fallback sources")

    sources.append(StoreSource(legacy, curated_record_to_listing, settings.primary_store_fetch_limit, strict=strict))
    fallback = StaticListingStore.from_file(settings.fallback_dataset_path or None)
    sources.append(StoreSource(fallback, fallback_record_to_listing, fetch_limit=None, strict=strict))

    resolver = SourceResolver(sources)
    return ServiceContainer(
        resolver=resolver,
        curation=CurationService(resolver, max_visible_pages=settings.max_visible_pages),
        reviews=ReviewService(legacy, strict=strict),
        engine=engine,
        http_client=http_client,
    )
