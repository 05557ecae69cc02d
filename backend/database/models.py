from datetime import datetime
from sqlalchemy import String, Float, Integer, Boolean, DateTime, Text, JSON, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class CuratedListing(Base):
    """Legacy curated listing row, one per VIN."""
    __tablename__ = "curated_listings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vin: Mapped[str] = mapped_column(String(17), unique=True, index=True, nullable=False)

    # Vehicle info
    make: Mapped[str] = mapped_column(String(50), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    body_type: Mapped[str | None] = mapped_column(String(50))

    # Pricing & mileage
    price: Mapped[float] = mapped_column(Float, nullable=False)
    mileage: Mapped[int] = mapped_column(Integer, nullable=False)

    # Title & history (nullable: not every feed reports these)
    title_status: Mapped[str | None] = mapped_column(String(20), default="clean")
    accident_count: Mapped[int | None] = mapped_column(Integer, default=0)
    owner_count: Mapped[int | None] = mapped_column(Integer, default=1)
    is_rental: Mapped[bool | None] = mapped_column(Boolean, default=False)
    is_fleet: Mapped[bool | None] = mapped_column(Boolean, default=False)
    has_lien: Mapped[bool | None] = mapped_column(Boolean, default=False)
    flood_damage: Mapped[bool | None] = mapped_column(Boolean, default=False)

    # Location
    state_of_origin: Mapped[str | None] = mapped_column(String(2))
    current_location: Mapped[str | None] = mapped_column(String(200))
    distance_miles: Mapped[float | None] = mapped_column(Float)
    dealer_name: Mapped[str | None] = mapped_column(String(200))
    flag_rust_concern: Mapped[bool | None] = mapped_column(Boolean, default=False)

    # Written by ingestion; not trusted on read (the score is recomputed)
    priority_score: Mapped[int | None] = mapped_column(Integer)

    # Source info
    source_platform: Mapped[str | None] = mapped_column(String(50))
    source_url: Mapped[str | None] = mapped_column(Text)
    source_listing_id: Mapped[str | None] = mapped_column(String(100))
    images_url: Mapped[list | None] = mapped_column(JSON)

    # User review
    reviewed_by_user: Mapped[bool] = mapped_column(Boolean, default=False)
    user_rating: Mapped[int | None] = mapped_column(Integer)
    user_notes: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    first_seen_at: Mapped[datetime | None] = mapped_column(DateTime, default=datetime.utcnow)
    last_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    created_at: Mapped[datetime | None] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_curated_make_model", "make", "model"),
    )
