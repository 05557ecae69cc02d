"""Shared test configuration."""

import sys
from dataclasses import replace
from datetime import date, datetime, timezone
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure the project root is in the path so imports work
project_root = Path(__file__).parent.parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from backend.database.models import Base  # noqa: E402
from backend.services.listing import Listing, is_rust_belt_state  # noqa: E402
from backend.services.scoring import mileage_rating, score_listing  # noqa: E402

AS_OF = date(2025, 6, 1)
RESOLVED_AT = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def resolved_at():
    return RESOLVED_AT


@pytest.fixture
def make_listing():
    """Build a scored Listing; defaults describe a clean one-owner RAV4."""
    def _make(**overrides) -> Listing:
        fields = {
            "vin": "4T1K61AK0MU123456",
            "make": "Toyota",
            "model": "RAV4",
            "year": 2021,
            "price": 26000,
            "mileage": 28000,
            "owner_count": 1,
            "accident_count": 0,
            "title_status": "clean",
            "state_of_origin": "CA",
            "current_location": "San Francisco, CA",
            "distance_miles": 15,
            "first_seen_at": RESOLVED_AT,
            "last_updated_at": RESOLVED_AT,
            "created_at": RESOLVED_AT,
        }
        fields.update(overrides)
        fields.setdefault("is_rust_belt_state", is_rust_belt_state(fields["state_of_origin"]))
        fields.setdefault("mileage_rating", mileage_rating(fields["mileage"], fields["year"], AS_OF))
        listing = Listing(**fields)
        if "priority_score" in overrides:
            return listing
        return replace(listing, priority_score=score_listing(listing, as_of=AS_OF, strict=True))
    return _make


@pytest.fixture
def test_session():
    """Create isolated in-memory SQLite DB and return session factory."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    return TestSession
