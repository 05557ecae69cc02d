"""
Source shape adapters - turn each source's native record into a Listing.

Three native shapes exist:
  - Marketcheck records from the primary store: nested ``build``, ``dealer``
    and ``media`` objects, ``miles`` instead of ``mileage``, Carfax booleans
    instead of owner/title fields.
  - Legacy ``curated_listings`` rows: flat, already using listing field names.
  - Static fallback records: flat like the legacy rows but without ids or
    timestamps.

Every adapter finishes through ``_build_listing`` which derives the mileage
rating and rust-belt flag and computes the priority score, so no stored score
or tier is ever trusted.
"""

import json
import logging
from dataclasses import replace
from datetime import date, datetime, timezone

from backend.services.listing import MAKES, Listing, is_rust_belt_state, normalize_vin
from backend.services.scoring import mileage_rating, score_listing

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("vin", "make", "model", "year", "price", "mileage")


def marketcheck_to_listing(
    raw: dict, resolved_at: datetime, as_of: date | None = None, strict: bool = False
) -> Listing | None:
    """Flatten a Marketcheck record from the primary store."""
    build = raw.get("build") or {}
    dealer = raw.get("dealer") or {}
    media = raw.get("media") or {}

    city = dealer.get("city")
    state = dealer.get("state")
    location = f"{city}, {state}" if city and state else "Location not available"

    one_owner = raw.get("carfax_1_owner")
    clean_title = raw.get("carfax_clean_title")

    fields = {
        "id": str(raw.get("id") or ""),
        "vin": raw.get("vin"),
        "make": build.get("make"),
        "model": build.get("model"),
        "year": build.get("year"),
        "body_type": build.get("body_type"),
        "price": raw.get("price"),
        "mileage": raw.get("miles"),
        "owner_count": 1 if one_owner is True else 2,
        "title_status": "clean" if clean_title is not False else "branded",
        "state_of_origin": state or "",
        "current_location": location,
        "distance_miles": raw.get("dist"),
        "dealer_name": dealer.get("name"),
        "source_platform": "Marketcheck",
        "source_url": raw.get("vdp_url") or "",
        "source_listing_id": raw.get("id"),
        "images_url": media.get("photo_links"),
        "first_seen_at": raw.get("first_seen_at_date"),
        "last_updated_at": raw.get("last_seen_at_date") or raw.get("created_at"),
        "created_at": raw.get("created_at") or raw.get("first_seen_at_date"),
    }
    return _build_listing(fields, resolved_at, as_of, source="primary", strict=strict)


def curated_record_to_listing(
    record: dict, resolved_at: datetime, as_of: date | None = None, strict: bool = False
) -> Listing | None:
    """Adapt a legacy ``curated_listings`` row (as a dict)."""
    fields = {key: record.get(key) for key in _FLAT_FIELDS}
    fields["id"] = str(record.get("id") or "")
    for ts in ("first_seen_at", "last_updated_at", "created_at"):
        fields[ts] = record.get(ts)
    return _build_listing(fields, resolved_at, as_of, source="legacy", strict=strict)


def fallback_record_to_listing(
    record: dict, resolved_at: datetime, as_of: date | None = None, strict: bool = False
) -> Listing | None:
    """Adapt a static fallback record; timestamps are always synthesized."""
    fields = {key: record.get(key) for key in _FLAT_FIELDS}
    fields["id"] = ""
    for ts in ("first_seen_at", "last_updated_at", "created_at"):
        fields[ts] = resolved_at
    return _build_listing(fields, resolved_at, as_of, source="fallback", strict=strict)


_FLAT_FIELDS = (
    "vin", "make", "model", "year", "body_type", "price", "mileage",
    "owner_count", "accident_count", "title_status", "is_rental", "is_fleet",
    "has_lien", "flood_damage", "state_of_origin", "flag_rust_concern",
    "current_location", "distance_miles", "dealer_name", "source_platform",
    "source_url", "source_listing_id", "images_url", "reviewed_by_user",
    "user_rating", "user_notes",
)


def _build_listing(
    fields: dict, resolved_at: datetime, as_of: date | None, source: str, strict: bool = False
) -> Listing | None:
    missing = [name for name in REQUIRED_FIELDS if fields.get(name) in (None, "")]
    if missing:
        logger.warning("Skipping %s record %r: missing %s", source, fields.get("vin"), ", ".join(missing))
        return None
    if fields["make"] not in MAKES:
        logger.debug("Skipping %s record %s: unsupported make %s", source, fields["vin"], fields["make"])
        return None

    try:
        year = int(fields["year"])
        price = int(round(float(fields["price"])))
        mileage = int(fields["mileage"])
    except (TypeError, ValueError):
        logger.warning("Skipping %s record %s: non-numeric year/price/mileage", source, fields["vin"])
        return None

    state = (fields.get("state_of_origin") or "").strip().upper()
    rust_belt = is_rust_belt_state(state)
    rating = fields.get("user_rating")

    listing = Listing(
        id=fields.get("id") or "",
        vin=normalize_vin(fields["vin"]),
        make=fields["make"],
        model=str(fields["model"]).strip(),
        year=year,
        body_type=fields.get("body_type"),
        price=price,
        mileage=max(mileage, 0),
        mileage_rating=mileage_rating(mileage, year, as_of),
        owner_count=_coalesce_int(fields.get("owner_count"), 1),
        accident_count=_coalesce_int(fields.get("accident_count"), 0),
        title_status=fields.get("title_status") or "clean",
        is_rental=bool(fields.get("is_rental")),
        is_fleet=bool(fields.get("is_fleet")),
        has_lien=bool(fields.get("has_lien")),
        flood_damage=bool(fields.get("flood_damage")),
        state_of_origin=state,
        is_rust_belt_state=rust_belt,
        flag_rust_concern=bool(fields.get("flag_rust_concern")) or rust_belt,
        current_location=fields.get("current_location") or "",
        distance_miles=_coalesce_float(fields.get("distance_miles")),
        dealer_name=fields.get("dealer_name"),
        source_platform=fields.get("source_platform") or "",
        source_url=fields.get("source_url") or "",
        source_listing_id=fields.get("source_listing_id"),
        images_url=_parse_images(fields.get("images_url")),
        reviewed_by_user=bool(fields.get("reviewed_by_user")),
        user_rating=int(rating) if rating is not None else None,
        user_notes=fields.get("user_notes"),
        first_seen_at=_parse_timestamp(fields.get("first_seen_at")) or resolved_at,
        last_updated_at=_parse_timestamp(fields.get("last_updated_at")) or resolved_at,
        created_at=_parse_timestamp(fields.get("created_at")) or resolved_at,
    )
    return replace(listing, priority_score=score_listing(listing, as_of=as_of, strict=strict))


def _coalesce_int(value, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _coalesce_float(value) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_images(value) -> tuple[str, ...]:
    """Photo links arrive as a list or as a JSON-encoded string."""
    if not value:
        return ()
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return ()
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(url) for url in value if url)


def _parse_timestamp(value) -> datetime | None:
    """Accept datetimes, ISO-8601 strings or unix epoch seconds; always UTC-aware."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Unparseable timestamp %r", value)
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
