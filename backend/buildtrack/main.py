from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from buildtrack.core.config import settings
from buildtrack.core.logging import configure_logging, logger
from buildtrack.api.errors import install_error_handlers
from buildtrack.api.router import api_router
from buildtrack.db.session import engine
from buildtrack.db.base import Base
from buildtrack.services.seed import seed_demo

def create_app() -> FastAPI:
    configure_logging(settings.ENV)
    app = FastAPI(title="BuildTrack phase financials", version="0.1.0")

    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.on_event("startup")
    def _startup():
        # Ensure tables exist for dev-only convenience; in prod rely on alembic
        if settings.ENV == "dev":
            import buildtrack.db.models  # noqa: F401
            Base.metadata.create_all(bind=engine)
        if settings.SEED_DEMO and settings.ENV == "dev":
            seed_demo()

    app.include_router(api_router)
    logger.info("app_started", env=settings.ENV)
    return app

app = create_app()
