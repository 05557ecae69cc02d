"""
Priority scoring rule table and quality tier thresholds.

Every listing starts from BASE_SCORE. Each rule then adds (or, for the risk
rules, subtracts) a bounded number of points. The positive rules sum to at
most 80 and the penalties to at least -20, so a listing scored against this
table always lands in [0, 100].

Each rule has a neutral value used when the listing is missing the data the
rule needs (unknown model, no distance, brand-new vehicle with no
miles-per-year).
"""

from dataclasses import dataclass

# Quality tier thresholds (inclusive lower bounds)
TOP_PICK_MIN_SCORE = 80
GOOD_BUY_MIN_SCORE = 60

MIN_SCORE = 0
MAX_SCORE = 100

BASE_SCORE = 20


@dataclass(frozen=True)
class Bracket:
    """Points awarded when the measured value is <= upper (None = open-ended)."""
    upper: float | None
    points: int


@dataclass(frozen=True)
class ScoringRule:
    name: str
    min_points: int
    max_points: int
    neutral: int


# Ordered rule table. Order is the order rules appear in score breakdowns.
SCORING_RULES: tuple[ScoringRule, ...] = (
    ScoringRule("title", min_points=0, max_points=10, neutral=5),
    ScoringRule("accidents", min_points=0, max_points=25, neutral=10),
    ScoringRule("owners", min_points=0, max_points=15, neutral=10),
    ScoringRule("mileage", min_points=1, max_points=12, neutral=6),
    ScoringRule("price", min_points=0, max_points=8, neutral=4),
    ScoringRule("distance", min_points=0, max_points=4, neutral=2),
    ScoringRule("model", min_points=0, max_points=6, neutral=3),
    ScoringRule("history_flags", min_points=-15, max_points=0, neutral=0),
    ScoringRule("rust_belt", min_points=-5, max_points=0, neutral=0),
)

RULES_BY_NAME: dict[str, ScoringRule] = {rule.name: rule for rule in SCORING_RULES}

CLEAN_TITLE_POINTS = 10

# accident_count <= upper -> points
ACCIDENT_BRACKETS: tuple[Bracket, ...] = (
    Bracket(0, 25),
    Bracket(1, 10),
    Bracket(2, 4),
    Bracket(None, 0),
)

# owner_count <= upper -> points
OWNER_BRACKETS: tuple[Bracket, ...] = (
    Bracket(1, 15),
    Bracket(2, 10),
    Bracket(3, 4),
    Bracket(None, 0),
)

# miles per year <= upper -> points
MILEAGE_PER_YEAR_BRACKETS: tuple[Bracket, ...] = (
    Bracket(10000, 12),
    Bracket(13000, 9),
    Bracket(15000, 5),
    Bracket(None, 1),
)

# asking price / model reference price <= upper -> points
PRICE_RATIO_BRACKETS: tuple[Bracket, ...] = (
    Bracket(0.90, 8),
    Bracket(1.00, 5),
    Bracket(1.10, 3),
    Bracket(None, 0),
)

# distance in miles <= upper -> points
DISTANCE_BRACKETS: tuple[Bracket, ...] = (
    Bracket(25, 4),
    Bracket(50, 3),
    Bracket(100, 1),
    Bracket(None, 0),
)

RENTAL_PENALTY = -3
FLEET_PENALTY = -3
LIEN_PENALTY = -4
FLOOD_PENALTY = -5
RUST_BELT_PENALTY = -5

# Model desirability points (max 6). Unlisted models get the rule's neutral value.
MODEL_DESIRABILITY: dict[str, int] = {
    "RAV4": 6,
    "CR-V": 6,
    "C-HR": 5,
    "Highlander": 5,
    "HR-V": 5,
    "Pilot": 4,
    "4Runner": 4,
    "Venza": 4,
    "Camry": 3,
    "Accord": 3,
    "Corolla": 2,
    "Civic": 2,
    "Tacoma": 2,
    "Ridgeline": 1,
}

# Typical used-market asking price by model, used for the price rule
MODEL_REFERENCE_PRICES: dict[str, int] = {
    "RAV4": 28000,
    "CR-V": 27000,
    "C-HR": 21000,
    "HR-V": 22000,
    "Highlander": 34000,
    "4Runner": 38000,
    "Venza": 30000,
    "Pilot": 33000,
    "Camry": 24000,
    "Accord": 25000,
    "Corolla": 19000,
    "Civic": 21000,
    "Tacoma": 32000,
    "Ridgeline": 31000,
    "Sienna": 36000,
    "Odyssey": 32000,
}

# Mileage rating thresholds (miles per year, exclusive upper bounds)
EXCELLENT_MILES_PER_YEAR = 10000
GOOD_MILES_PER_YEAR = 15000

# States with heavy road-salt exposure
RUST_BELT_STATES: frozenset[str] = frozenset({
    "OH", "MI", "WI", "IL", "IN", "MN", "IA", "PA",
    "NY", "MA", "CT", "VT", "NH", "ME", "MO",
})


def bracket_points(value: float, brackets: tuple[Bracket, ...]) -> int:
    """Return the points of the first bracket whose upper bound covers value."""
    for bracket in brackets:
        if bracket.upper is None or value <= bracket.upper:
            return bracket.points
    return brackets[-1].points
