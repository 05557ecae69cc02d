from fastapi import APIRouter, Body, Depends, HTTPException, Request

from backend.config.settings import get_settings
from backend.services.container import ServiceContainer
from backend.services.curation import CurationQuery
from backend.services.errors import ListingNotFoundError, PipelineValidationError
from backend.services.listing import is_valid_vin, listing_to_dict, normalize_vin
from backend.services.review_service import ReviewUpdate

listing_router = APIRouter(prefix="/listings", tags=["listings"])


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(status_code=503, detail="Service is starting up")
    return container


def _validation_error(exc: PipelineValidationError, status_code: int = 422) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"message": str(exc), "errors": exc.errors})


# --- Endpoints ---

@listing_router.get("")
async def list_listings(
    make: str | None = None,
    model: str | None = None,
    year_min: str | None = None,
    year_max: str | None = None,
    price_min: str | None = None,
    price_max: str | None = None,
    mileage_max: str | None = None,
    mileage_rating: str | None = None,
    quality_tier: str | None = None,
    search: str | None = None,
    sort_field: str = "priority",
    sort_order: str = "desc",
    page: str = "1",
    page_size: str | None = None,
    container: ServiceContainer = Depends(get_container),
):
    """Filtered, sorted page of curated listings plus tier stats."""
    # Bounds arrive as raw strings so every field is validated in one place
    options = {
        "make": make,
        "model": model,
        "year_min": year_min,
        "year_max": year_max,
        "price_min": price_min,
        "price_max": price_max,
        "mileage_max": mileage_max,
        "mileage_rating": mileage_rating,
        "quality_tier": quality_tier,
        "search": search,
    }
    options = {k: v for k, v in options.items() if v not in (None, "")}
    try:
        query = CurationQuery.parse(
            **options,
            sort_field=sort_field,
            sort_order=sort_order,
            page=page,
            page_size=page_size or get_settings().default_page_size,
        )
    except PipelineValidationError as e:
        raise _validation_error(e)

    result = await container.curation.curate(query)
    return result.to_dict()


@listing_router.get("/filter-options")
async def filter_options(container: ServiceContainer = Depends(get_container)):
    """Distinct makes, models and years for filter dropdowns."""
    return await container.curation.filter_options()


@listing_router.get("/{vin}")
async def get_listing(vin: str, container: ServiceContainer = Depends(get_container)):
    vin = normalize_vin(vin)
    if not is_valid_vin(vin):
        raise HTTPException(status_code=400, detail="Invalid VIN format")

    listing = await container.curation.lookup(vin)
    if listing is None:
        raise HTTPException(status_code=404, detail=f"No vehicle found with VIN: {vin}")
    return listing_to_dict(listing)


@listing_router.get("/{vin}/review")
async def get_review(vin: str, container: ServiceContainer = Depends(get_container)):
    try:
        return await container.reviews.get_review(vin)
    except PipelineValidationError as e:
        raise _validation_error(e, status_code=400)
    except ListingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@listing_router.patch("/{vin}/review")
async def update_review(
    vin: str,
    payload: dict | None = Body(default=None),
    container: ServiceContainer = Depends(get_container),
):
    """Partial update of reviewed flag, 1-5 rating and notes."""
    try:
        update = ReviewUpdate.parse(payload)
        listing = await container.reviews.update_review(vin, update)
    except PipelineValidationError as e:
        raise _validation_error(e, status_code=400)
    except ListingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {
        "success": True,
        "vin": listing.vin,
        "reviewed_by_user": listing.reviewed_by_user,
        "user_rating": listing.user_rating,
        "user_notes": listing.user_notes,
        "listing": listing_to_dict(listing),
    }
