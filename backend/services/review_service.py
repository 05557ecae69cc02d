"""User review annotations: the one mutable part of a listing."""

import logging
from datetime import datetime, timezone

from pydantic import BaseModel, Field, ValidationError, model_validator

from backend.services.adapters import curated_record_to_listing
from backend.services.errors import ListingNotFoundError, ReviewValidationError
from backend.services.listing import Listing, is_valid_vin, normalize_vin
from backend.services.listing_stores import SqlListingStore

logger = logging.getLogger(__name__)


class ReviewUpdate(BaseModel):
    """Partial update. Omitted fields are left alone; ``null`` clears rating or notes."""
    reviewed_by_user: bool | None = None
    user_rating: int | None = Field(None, ge=1, le=5)
    user_notes: str | None = Field(None, max_length=5000)

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def _check_fields(self) -> "ReviewUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one of reviewed_by_user, user_rating or user_notes is required")
        if "reviewed_by_user" in self.model_fields_set and self.reviewed_by_user is None:
            raise ValueError("reviewed_by_user cannot be null")
        return self

    @classmethod
    def parse(cls, payload: dict | None) -> "ReviewUpdate":
        try:
            return cls.model_validate(payload or {})
        except ValidationError as exc:
            raise ReviewValidationError.from_pydantic(exc) from exc

    def changes(self) -> dict:
        return self.model_dump(include=self.model_fields_set)


class ReviewService:
    def __init__(self, writer: SqlListingStore, strict: bool = False):
        self.writer = writer
        self.strict = strict

    async def update_review(self, vin: str, update: ReviewUpdate | dict) -> Listing:
        """Apply the update and return the refreshed listing."""
        vin = _checked_vin(vin)
        if not isinstance(update, ReviewUpdate):
            update = ReviewUpdate.parse(update)

        # Only rows that adapt to a curated listing may be annotated
        current = await self.writer.get(vin)
        if current is None or self._to_listing(current) is None:
            raise ListingNotFoundError(vin)

        record = await self.writer.update_review(vin, update.changes())
        if record is None:
            raise ListingNotFoundError(vin)
        return self._to_listing(record)

    async def get_review(self, vin: str) -> dict:
        vin = _checked_vin(vin)
        review = await self.writer.get_review(vin)
        if review is None:
            raise ListingNotFoundError(vin)
        return review

    def _to_listing(self, record: dict) -> Listing | None:
        now = datetime.now(timezone.utc)
        return curated_record_to_listing(record, now, now.date(), strict=self.strict)


def _checked_vin(vin: str) -> str:
    vin = normalize_vin(vin)
    if not is_valid_vin(vin):
        raise ReviewValidationError([{"field": "vin", "reason": "Invalid VIN format"}])
    return vin
