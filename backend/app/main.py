"""
Culvert Crawlers - Community Science Survey API
Receives culvert, ditch and storm drain reports (with photos) from field reporters.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .core.config import settings
from .models.base import Base, engine
from .models import survey  # Ensure survey tables are registered
from .api import surveys

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

# Create all database tables
# NOTE: In production, use Alembic migrations instead of create_all()
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Culvert Crawlers Survey API",
    description=(
        "Community science reports about culverts, ditches and storm drains. "
        "Accepts live and replayed offline submissions."
    ),
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

if settings.ENVIRONMENT == "production":
    allow_origins = ["*"]
else:
    allow_origins = settings.CORS_ORIGINS

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(surveys.router)


def api_route_paths(routes) -> list:
    # Included routers on newer Starlette have no path attribute
    paths = (getattr(r, "path", "") for r in routes)
    return [p for p in paths if p.startswith("/api")]


logger.info("Registered routes: %s", ", ".join(api_route_paths(app.routes)))


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": settings.APP_NAME, "version": settings.VERSION}
