"""Tests for review annotation updates."""

import pytest

from backend.database.models import CuratedListing
from backend.seed_data import seed_listings
from backend.services.errors import ListingNotFoundError, ReviewValidationError
from backend.services.listing_stores import SqlListingStore, StaticListingStore
from backend.services.review_service import ReviewService, ReviewUpdate


@pytest.fixture
def reviews(test_session):
    db = test_session()
    seed_listings(db, StaticListingStore.from_file().records)
    db.close()
    return ReviewService(SqlListingStore(test_session))


class TestReviewUpdate:
    def test_partial_update_keeps_only_given_fields(self):
        update = ReviewUpdate.parse({"user_rating": 4})
        assert update.changes() == {"user_rating": 4}

    def test_null_clears_notes(self):
        assert ReviewUpdate.parse({"user_notes": None}).changes() == {"user_notes": None}

    def test_empty_update_rejected(self):
        with pytest.raises(ReviewValidationError):
            ReviewUpdate.parse({})

    @pytest.mark.parametrize("rating", [0, 6, -1])
    def test_rating_out_of_range_rejected(self, rating):
        with pytest.raises(ReviewValidationError) as exc_info:
            ReviewUpdate.parse({"user_rating": rating})
        assert exc_info.value.errors[0]["field"] == "user_rating"

    def test_unknown_field_rejected(self):
        with pytest.raises(ReviewValidationError):
            ReviewUpdate.parse({"priority_score": 100})

    def test_null_reviewed_flag_rejected(self):
        with pytest.raises(ReviewValidationError):
            ReviewUpdate.parse({"reviewed_by_user": None})


class TestReviewService:
    @pytest.mark.asyncio
    async def test_update_returns_refreshed_listing(self, reviews):
        listing = await reviews.update_review(
            "4t1k61ak0mu123456", {"reviewed_by_user": True, "user_rating": 5, "user_notes": "Great find"}
        )
        assert listing.vin == "4T1K61AK0MU123456"
        assert listing.reviewed_by_user is True
        assert listing.user_rating == 5
        assert listing.user_notes == "Great find"
        assert 0 <= listing.priority_score <= 100

    @pytest.mark.asyncio
    async def test_partial_update_leaves_other_fields(self, reviews):
        await reviews.update_review("4T1K61AK0MU123456", {"user_rating": 3, "user_notes": "ok"})
        listing = await reviews.update_review("4T1K61AK0MU123456", ReviewUpdate(reviewed_by_user=True))
        assert listing.user_rating == 3
        assert listing.user_notes == "ok"

    @pytest.mark.asyncio
    async def test_unknown_vin_raises_not_found(self, reviews):
        with pytest.raises(ListingNotFoundError) as exc_info:
            await reviews.update_review("JTEBU5JR4K0000000", {"user_rating": 2})
        assert "JTEBU5JR4K0000000" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_malformed_vin_rejected(self, reviews):
        with pytest.raises(ReviewValidationError):
            await reviews.update_review("not-a-vin", {"user_rating": 2})

    @pytest.mark.asyncio
    async def test_get_review(self, reviews):
        await reviews.update_review("2HKRM4H75KH334455", {"user_notes": "Check brakes"})
        review = await reviews.get_review("2HKRM4H75KH334455")
        assert review["user_notes"] == "Check brakes"
        assert review["reviewed_by_user"] is False

    @pytest.mark.asyncio
    async def test_get_review_unknown_vin(self, reviews):
        with pytest.raises(ListingNotFoundError):
            await reviews.get_review("JTEBU5JR4K0000000")

    @pytest.mark.asyncio
    async def test_uncurated_row_rejected_without_writing(self, reviews, test_session):
        db = test_session()
        db.add(CuratedListing(vin="1FTFW1E50MFA00001", make="Ford", model="F-150", year=2021, price=38000, mileage=30000))
        db.commit()
        db.close()

        with pytest.raises(ListingNotFoundError):
            await reviews.update_review("1FTFW1E50MFA00001", {"user_rating": 5})

        db = test_session()
        row = db.query(CuratedListing).filter(CuratedListing.vin == "1FTFW1E50MFA00001").first()
        assert row.user_rating is None
        db.close()
