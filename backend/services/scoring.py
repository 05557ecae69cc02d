"""
Priority scoring engine - the core ranking signal of the curated feed.

Rule-based weighted scoring (0-100), starting from a base score:
  1. Title status              (up to +10)
  2. Accident history          (up to +25)
  3. Ownership count           (up to +15)
  4. Mileage vs age            (up to +12)
  5. Price vs market reference (up to +8)
  6. Distance                  (up to +4)
  7. Model desirability        (up to +6)
  8. Rental / fleet / lien / flood history (down to -15)
  9. Rust belt exposure        (down to -5)

Point values live in backend/config/scoring_weights.py.
"""

import logging
from datetime import date
from typing import TYPE_CHECKING

from backend.config import scoring_weights as weights
from backend.services.errors import InvariantViolationError

if TYPE_CHECKING:
    from backend.services.listing import Listing

logger = logging.getLogger(__name__)

TIER_LABELS: dict[str, str] = {
    "top_pick": "Top Pick",
    "good_buy": "Good Buy",
    "caution": "Caution",
}

TIER_DESCRIPTIONS: dict[str, str] = {
    "top_pick": "Exceptional vehicles that meet all criteria",
    "good_buy": "Solid vehicles with minor compromises",
    "caution": "Vehicles requiring careful consideration",
}


def quality_tier(
    score: int,
    top_pick_min: int = weights.TOP_PICK_MIN_SCORE,
    good_buy_min: int = weights.GOOD_BUY_MIN_SCORE,
) -> str:
    """Map a priority score to its quality tier."""
    if score >= top_pick_min:
        return "top_pick"
    if score >= good_buy_min:
        return "good_buy"
    return "caution"


def age_in_years(year: int, as_of: date | None = None) -> int:
    if as_of is None:
        as_of = date.today()
    return max(as_of.year - year, 0)


def mileage_per_year(mileage: int, year: int, as_of: date | None = None) -> float | None:
    """Miles driven per year of age. None for current-year vehicles."""
    age = age_in_years(year, as_of)
    if age <= 0 or mileage is None or mileage < 0:
        return None
    return mileage / age


def mileage_rating(mileage: int, year: int, as_of: date | None = None) -> str:
    """Rate mileage for age; brand-new vehicles are rated as one year old."""
    age = max(age_in_years(year, as_of), 1)
    per_year = max(mileage or 0, 0) / age
    if per_year < weights.EXCELLENT_MILES_PER_YEAR:
        return "excellent"
    elif per_year < weights.GOOD_MILES_PER_YEAR:
        return "good"
    return "acceptable"


def score_listing(
    listing: "Listing",
    as_of: date | None = None,
    strict: bool = False,
) -> int:
    """
    Score a listing from 0-100.

    Higher scores = more desirable purchase. Identical attributes always give
    an identical score for the same reference date. ``strict`` raises instead
    of clamping when the rule table produces an out-of-range score.
    """
    points = _rule_points(listing, as_of)
    raw = weights.BASE_SCORE + sum(points.values())
    return clamp_score(raw, strict=strict)


def score_breakdown(listing: "Listing", as_of: date | None = None) -> dict:
    """Per-rule points plus the final score and tier."""
    points = _rule_points(listing, as_of)
    total = clamp_score(weights.BASE_SCORE + sum(points.values()), strict=False)
    return {
        "score": total,
        "tier": quality_tier(total),
        "base": weights.BASE_SCORE,
        "rules": {
            rule.name: {
                "points": points[rule.name],
                "min": rule.min_points,
                "max": rule.max_points,
            }
            for rule in weights.SCORING_RULES
        },
    }


def clamp_score(raw: float, strict: bool = False) -> int:
    """Round and clamp into [0, 100]; out-of-range values are a table defect."""
    score = round(raw)
    if weights.MIN_SCORE <= score <= weights.MAX_SCORE:
        return score
    if strict:
        raise InvariantViolationError(f"priority score {score} outside [0, 100]")
    logger.warning("Priority score %s outside [0, 100] - clamping", score)
    return min(weights.MAX_SCORE, max(weights.MIN_SCORE, score))


def _rule_points(listing: "Listing", as_of: date | None) -> dict[str, int]:
    return {
        "title": _score_title(listing.title_status),
        "accidents": _score_accidents(listing.accident_count),
        "owners": _score_owners(listing.owner_count),
        "mileage": _score_mileage(listing.mileage, listing.year, as_of),
        "price": _score_price(listing.price, listing.model),
        "distance": _score_distance(listing.distance_miles),
        "model": _score_model(listing.model),
        "history_flags": _score_history_flags(
            listing.is_rental, listing.is_fleet, listing.has_lien, listing.flood_damage
        ),
        "rust_belt": _score_rust_belt(listing.is_rust_belt_state, listing.flag_rust_concern),
    }


def _neutral(rule_name: str) -> int:
    return weights.RULES_BY_NAME[rule_name].neutral


def _score_title(title_status: str | None) -> int:
    if not title_status:
        return _neutral("title")
    return weights.CLEAN_TITLE_POINTS if title_status.strip().lower() == "clean" else 0


def _score_accidents(accident_count: int | None) -> int:
    if accident_count is None or accident_count < 0:
        return _neutral("accidents")
    return weights.bracket_points(accident_count, weights.ACCIDENT_BRACKETS)


def _score_owners(owner_count: int | None) -> int:
    if owner_count is None or owner_count <= 0:
        return _neutral("owners")
    return weights.bracket_points(owner_count, weights.OWNER_BRACKETS)


def _score_mileage(mileage: int | None, year: int, as_of: date | None) -> int:
    per_year = mileage_per_year(mileage, year, as_of) if mileage is not None else None
    if per_year is None:
        return _neutral("mileage")
    return weights.bracket_points(per_year, weights.MILEAGE_PER_YEAR_BRACKETS)


def _score_price(price: int | None, model: str | None) -> int:
    reference = _lookup_model(model, weights.MODEL_REFERENCE_PRICES)
    if reference is None or price is None or price <= 0:
        return _neutral("price")
    return weights.bracket_points(price / reference, weights.PRICE_RATIO_BRACKETS)


def _score_distance(distance_miles: float | None) -> int:
    if distance_miles is None or distance_miles < 0:
        return _neutral("distance")
    return weights.bracket_points(distance_miles, weights.DISTANCE_BRACKETS)


def _score_model(model: str | None) -> int:
    points = _lookup_model(model, weights.MODEL_DESIRABILITY)
    if points is None:
        return _neutral("model")
    return points


def _score_history_flags(is_rental: bool, is_fleet: bool, has_lien: bool, flood_damage: bool) -> int:
    points = 0
    if is_rental:
        points += weights.RENTAL_PENALTY
    if is_fleet:
        points += weights.FLEET_PENALTY
    if has_lien:
        points += weights.LIEN_PENALTY
    if flood_damage:
        points += weights.FLOOD_PENALTY
    return points


def _score_rust_belt(is_rust_belt_state: bool, flag_rust_concern: bool) -> int:
    return weights.RUST_BELT_PENALTY if (is_rust_belt_state or flag_rust_concern) else 0


def _lookup_model(model: str | None, table: dict[str, int]) -> int | None:
    """Exact match, then case-insensitive, then partial ("RAV4 Hybrid" -> "RAV4")."""
    if not model:
        return None
    name = model.strip()
    if name in table:
        return table[name]
    lowered = name.lower()
    for key, val in table.items():
        if key.lower() == lowered:
            return val
    for key, val in table.items():
        if key.lower() in lowered:
            return val
    return None
