"""
Listing stores - raw record access for each backing source.

A store only knows how to fetch native records (plain dicts). Turning them
into ``Listing`` objects is the adapters' job, and choosing between stores is
the resolver's. Three stores exist:

  - ``HttpListingStore``: the primary live store, a PostgREST-style HTTP API
    over the ``marketcheck_listings`` table. Retries timeouts and 5xx/4xx
    responses with exponential backoff (tenacity).
  - ``SqlListingStore``: the legacy ``curated_listings`` table via SQLAlchemy.
    Also the only writer, for review annotations.
  - ``StaticListingStore``: the bundled JSON dataset, scanned linearly.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, Sequence

import httpx
from sqlalchemy import func
from sqlalchemy.orm import sessionmaker
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from backend.database.models import CuratedListing
from backend.services.errors import SourceUnavailableError
from backend.services.listing import normalize_vin

logger = logging.getLogger(__name__)

DEFAULT_DATASET_PATH = Path(__file__).resolve().parent.parent / "data" / "fallback_listings.json"


@dataclass(frozen=True)
class StorePredicate:
    """Equality predicate on a listing field (``make`` or ``model``)."""
    field: str
    value: str


@dataclass(frozen=True)
class SortSpec:
    """Ordering hint in listing field names (price, mileage, year, created_at)."""
    field: str
    descending: bool = True


class ListingStore(Protocol):
    name: str
    supports_predicates: bool

    async def get(self, vin: str) -> dict | None:
        ...

    async def query(
        self,
        predicates: Sequence[StorePredicate] = (),
        sort_spec: SortSpec | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict]:
        ...


# --- Primary store (HTTP) ---

_HTTP_FIELDS = {
    "make": "build->>make",
    "model": "build->>model",
    "year": "build->>year",
    "price": "price",
    "mileage": "miles",
    "created_at": "created_at",
}


class HttpListingStore:
    """Marketcheck listings behind a PostgREST endpoint."""

    name = "primary"
    supports_predicates = True

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        table: str = "marketcheck_listings",
        api_key: str = "",
        timeout: float = 10.0,
        max_attempts: int = 3,
        retry_wait=None,
    ):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.table = table
        self.api_key = api_key
        self.timeout = httpx.Timeout(timeout, connect=min(timeout, 5.0))
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=10)

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.table}"

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def get(self, vin: str) -> dict | None:
        rows = await self._request({"vin": f"ilike.{normalize_vin(vin)}", "limit": "1"})
        return rows[0] if rows else None

    async def query(
        self,
        predicates: Sequence[StorePredicate] = (),
        sort_spec: SortSpec | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict]:
        params: dict[str, str] = {}
        for predicate in predicates:
            column = _HTTP_FIELDS.get(predicate.field)
            if column is None:
                raise ValueError(f"Unsupported store predicate: {predicate.field}")
            params[column] = f"eq.{predicate.value}"
        if sort_spec is not None and sort_spec.field in _HTTP_FIELDS:
            direction = "desc" if sort_spec.descending else "asc"
            params["order"] = f"{_HTTP_FIELDS[sort_spec.field]}.{direction}"
        if limit is not None:
            params["limit"] = str(limit)
        if offset:
            params["offset"] = str(offset)
        return await self._request(params)

    async def _request(self, params: dict) -> list[dict]:
        """GET the table with retries; any final failure becomes SourceUnavailableError."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=self.retry_wait,
                retry=retry_if_exception_type((httpx.TimeoutException, httpx.HTTPStatusError)),
                reraise=True,
            ):
                with attempt:
                    resp = await self.client.get(
                        self.url, params=params, headers=self._headers(), timeout=self.timeout
                    )
                    resp.raise_for_status()
                    payload = resp.json()
        except httpx.HTTPError as exc:
            logger.warning("Primary listing store request failed: %s", exc)
            raise SourceUnavailableError(self.name, str(exc)) from exc
        except ValueError as exc:
            raise SourceUnavailableError(self.name, "response was not valid JSON") from exc

        if not isinstance(payload, list):
            raise SourceUnavailableError(self.name, "expected a JSON array of listings")
        return payload


# --- Legacy store (SQL) ---

_SQL_SORT_COLUMNS = {
    "price": CuratedListing.price,
    "mileage": CuratedListing.mileage,
    "year": CuratedListing.year,
    "created_at": CuratedListing.created_at,
}

REVIEW_FIELDS = ("reviewed_by_user", "user_rating", "user_notes")


class SqlListingStore:
    """The ``curated_listings`` table. Blocking SQLAlchemy calls run in a worker thread."""

    name = "legacy"
    supports_predicates = True

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    async def get(self, vin: str) -> dict | None:
        return await asyncio.to_thread(self._get, normalize_vin(vin))

    async def query(
        self,
        predicates: Sequence[StorePredicate] = (),
        sort_spec: SortSpec | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict]:
        return await asyncio.to_thread(self._query, tuple(predicates), sort_spec, limit, offset)

    async def get_review(self, vin: str) -> dict | None:
        record = await self.get(vin)
        if record is None:
            return None
        return {"vin": record["vin"], **{name: record[name] for name in REVIEW_FIELDS}}

    async def update_review(self, vin: str, changes: dict) -> dict | None:
        """Apply review field changes; returns the updated record or None if the VIN is unknown."""
        unknown = set(changes) - set(REVIEW_FIELDS)
        if unknown:
            raise ValueError(f"Not review fields: {', '.join(sorted(unknown))}")
        return await asyncio.to_thread(self._update_review, normalize_vin(vin), dict(changes))

    def _get(self, vin: str) -> dict | None:
        with self.session_factory() as db:
            row = db.query(CuratedListing).filter(func.upper(CuratedListing.vin) == vin).first()
            return row_to_record(row) if row else None

    def _query(self, predicates, sort_spec, limit, offset) -> list[dict]:
        with self.session_factory() as db:
            query = db.query(CuratedListing)
            for predicate in predicates:
                if predicate.field == "make":
                    query = query.filter(CuratedListing.make == predicate.value)
                elif predicate.field == "model":
                    query = query.filter(CuratedListing.model == predicate.value)
                else:
                    raise ValueError(f"Unsupported store predicate: {predicate.field}")
            column = _SQL_SORT_COLUMNS.get(sort_spec.field) if sort_spec else None
            if column is not None:
                query = query.order_by(column.desc() if sort_spec.descending else column.asc())
            query = query.order_by(CuratedListing.id)
            if offset:
                query = query.offset(offset)
            if limit is not None:
                query = query.limit(limit)
            return [row_to_record(row) for row in query.all()]

    def _update_review(self, vin: str, changes: dict) -> dict | None:
        with self.session_factory() as db:
            row = db.query(CuratedListing).filter(func.upper(CuratedListing.vin) == vin).first()
            if row is None:
                return None
            for name, value in changes.items():
                setattr(row, name, value)
            row.last_updated_at = datetime.now(timezone.utc)
            db.commit()
            db.refresh(row)
            logger.info("Updated review for %s: %s", vin, ", ".join(sorted(changes)))
            return row_to_record(row)


def row_to_record(row: CuratedListing) -> dict:
    return {column.name: getattr(row, column.name) for column in CuratedListing.__table__.columns}


# --- Static fallback dataset ---

class StaticListingStore:
    """Bundled records loaded once from JSON. No predicate support: callers filter."""

    name = "fallback"
    supports_predicates = False

    def __init__(self, records: Sequence[dict]):
        self.records = tuple(records)

    @classmethod
    def from_file(cls, path: str | Path | None = None) -> "StaticListingStore":
        path = Path(path) if path else DEFAULT_DATASET_PATH
        with open(path, encoding="utf-8") as f:
            records = json.load(f)
        if not isinstance(records, list):
            raise ValueError(f"Fallback dataset {path} must contain a JSON array")
        logger.info("Loaded %d fallback listings from %s", len(records), path)
        return cls(records)

    async def get(self, vin: str) -> dict | None:
        vin = normalize_vin(vin)
        for record in self.records:
            if normalize_vin(str(record.get("vin") or "")) == vin:
                return dict(record)
        return None

    async def query(
        self,
        predicates: Sequence[StorePredicate] = (),
        sort_spec: SortSpec | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict]:
        records = [dict(record) for record in self.records]
        end = offset + limit if limit is not None else None
        return records[offset:end]
