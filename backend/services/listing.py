"""
The common listing record every source is normalized into.

A Listing is immutable once built. Review annotations are changed on the
stored row by the review writer, which then hands back a freshly adapted
Listing.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime

from backend.config.scoring_weights import RUST_BELT_STATES
from backend.services.scoring import TIER_LABELS, quality_tier

MAKES = ("Toyota", "Honda")
MILEAGE_RATINGS = ("excellent", "good", "acceptable")
QUALITY_TIERS = ("top_pick", "good_buy", "caution")

# VINs never contain I, O or Q
VIN_PATTERN = re.compile(r"^[A-HJ-NPR-Z0-9]{17}$", re.IGNORECASE)


@dataclass(frozen=True)
class Listing:
    vin: str
    make: str
    model: str
    year: int
    price: int
    mileage: int
    first_seen_at: datetime
    last_updated_at: datetime
    created_at: datetime
    id: str = ""
    body_type: str | None = None
    mileage_rating: str = "acceptable"
    owner_count: int = 1
    accident_count: int = 0
    title_status: str = "clean"
    is_rental: bool = False
    is_fleet: bool = False
    has_lien: bool = False
    flood_damage: bool = False
    state_of_origin: str = ""
    is_rust_belt_state: bool = False
    flag_rust_concern: bool = False
    current_location: str = ""
    distance_miles: float | None = None
    dealer_name: str | None = None
    priority_score: int = 0
    source_platform: str = ""
    source_url: str = ""
    source_listing_id: str | None = None
    images_url: tuple[str, ...] = field(default_factory=tuple)
    reviewed_by_user: bool = False
    user_rating: int | None = None
    user_notes: str | None = None

    @property
    def quality_tier(self) -> str:
        # Never cached: always derived from the current score
        return quality_tier(self.priority_score)


def normalize_vin(vin: str) -> str:
    """Canonical VIN form used at every source boundary."""
    return (vin or "").strip().upper()


def is_valid_vin(vin: str) -> bool:
    return bool(VIN_PATTERN.fullmatch(normalize_vin(vin)))


def is_rust_belt_state(state: str | None) -> bool:
    if not state:
        return False
    return state.strip().upper() in RUST_BELT_STATES


def listing_to_dict(listing: Listing) -> dict:
    """Plain-dict view of a listing, including the derived quality tier."""
    return {
        "id": listing.id,
        "vin": listing.vin,
        "make": listing.make,
        "model": listing.model,
        "year": listing.year,
        "body_type": listing.body_type,
        "price": listing.price,
        "mileage": listing.mileage,
        "mileage_rating": listing.mileage_rating,
        "owner_count": listing.owner_count,
        "accident_count": listing.accident_count,
        "title_status": listing.title_status,
        "is_rental": listing.is_rental,
        "is_fleet": listing.is_fleet,
        "has_lien": listing.has_lien,
        "flood_damage": listing.flood_damage,
        "state_of_origin": listing.state_of_origin,
        "is_rust_belt_state": listing.is_rust_belt_state,
        "flag_rust_concern": listing.flag_rust_concern,
        "current_location": listing.current_location,
        "distance_miles": listing.distance_miles,
        "dealer_name": listing.dealer_name,
        "priority_score": listing.priority_score,
        "quality_tier": listing.quality_tier,
        "quality_tier_label": TIER_LABELS[listing.quality_tier],
        "source_platform": listing.source_platform,
        "source_url": listing.source_url,
        "source_listing_id": listing.source_listing_id,
        "images_url": list(listing.images_url),
        "reviewed_by_user": listing.reviewed_by_user,
        "user_rating": listing.user_rating,
        "user_notes": listing.user_notes,
        "first_seen_at": listing.first_seen_at.isoformat(),
        "last_updated_at": listing.last_updated_at.isoformat(),
        "created_at": listing.created_at.isoformat(),
    }
