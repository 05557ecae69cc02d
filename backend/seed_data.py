"""
Seed the legacy curated_listings table from the bundled fallback dataset.

Run: python -m backend.seed_data
"""

from datetime import datetime, timezone

from backend.config.settings import get_settings
from backend.database.db import create_db_engine, create_session_factory, init_db
from backend.database.models import CuratedListing
from backend.services.adapters import fallback_record_to_listing
from backend.services.listing_stores import StaticListingStore


def seed_listings(db, records) -> int:
    """Insert records whose VIN is not already stored. Returns the number added."""
    now = datetime.now(timezone.utc)
    count = 0
    for record in records:
        listing = fallback_record_to_listing(record, now, now.date())
        if listing is None:
            continue
        existing = db.query(CuratedListing).filter(CuratedListing.vin == listing.vin).first()
        if existing:
            continue
        db.add(CuratedListing(
            vin=listing.vin,
            make=listing.make,
            model=listing.model,
            year=listing.year,
            body_type=listing.body_type,
            price=listing.price,
            mileage=listing.mileage,
            title_status=listing.title_status,
            accident_count=listing.accident_count,
            owner_count=listing.owner_count,
            is_rental=listing.is_rental,
            is_fleet=listing.is_fleet,
            has_lien=listing.has_lien,
            flood_damage=listing.flood_damage,
            state_of_origin=listing.state_of_origin,
            current_location=listing.current_location,
            distance_miles=listing.distance_miles,
            dealer_name=listing.dealer_name,
            flag_rust_concern=listing.flag_rust_concern,
            priority_score=listing.priority_score,
            source_platform=listing.source_platform,
            source_url=listing.source_url,
            source_listing_id=listing.source_listing_id,
            images_url=list(listing.images_url),
        ))
        count += 1

    db.commit()
    return count


def main():
    settings = get_settings()
    engine = create_db_engine(settings.database_url)
    init_db(engine)
    store = StaticListingStore.from_file(settings.fallback_dataset_path or None)
    SessionLocal = create_session_factory(engine)
    db = SessionLocal()
    try:
        count = seed_listings(db, store.records)
        print(f"Seeded {count} curated listings")
    finally:
        db.close()


if __name__ == "__main__":
    main()
