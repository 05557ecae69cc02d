from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.api.routes import listing_router
from backend.config.settings import get_settings
from backend.services.container import ServiceContainer, build_container

settings = get_settings()

VERSION = "0.1.0"


def create_app(container: ServiceContainer | None = None) -> FastAPI:
    """Build the API. Pass a container to skip wiring from settings (tests)."""
    # Disable Swagger/ReDoc in production
    docs_kwargs = {}
    if settings.is_production:
        docs_kwargs = {"docs_url": None, "redoc_url": None}

    app = FastAPI(
        title="ToyotaPicks API",
        description="Curated used Toyota and Honda listings, scored and ranked",
        version=VERSION,
        **docs_kwargs,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "PATCH"],
        allow_headers=["Content-Type"],
    )

    app.include_router(listing_router, prefix="/api/v1")

    @app.get("/health", tags=["health"])
    def health_check():
        sources = app.state.container.resolver.source_names if app.state.container else []
        return {"status": "ok", "version": VERSION, "sources": sources}

    @app.on_event("startup")
    def on_startup():
        settings.validate_production()
        if app.state.container is None:
            app.state.container = build_container(settings)

    @app.on_event("shutdown")
    async def on_shutdown():
        if app.state.container is not None:
            await app.state.container.aclose()

    return app


app = create_app()
