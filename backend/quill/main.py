import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from quill.api.routes import auth, bookmarks, posts, users
from quill.api.routing import RouteDefinition, build_router
from quill.core.config import settings
from quill.core.database import create_schema, engine
from quill.core.exceptions import envelope, register_exception_handlers
from quill.core.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: create tables (when enabled) and start the cover cleanup scheduler
    Shutdown: stop the scheduler and release pooled connections
    """
    if settings.AUTO_CREATE_DB_SCHEMA:
        # In production, use migrations instead of create_all
        await create_schema(engine)
    if settings.ENABLE_SCHEDULER:
        start_scheduler()
    logger.info("Quill API started")
    yield
    stop_scheduler()
    logger.info("Quill API stopped")
    await engine.dispose()


app = FastAPI(
    title="Quill API",
    description="Blogging backend: accounts, posts, follows and bookmarks",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# All routes are prefixed with /api
app.include_router(auth.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(posts.router, prefix="/api")
app.include_router(bookmarks.router, prefix="/api")


async def root():
    """API information"""
    return envelope("Quill API", 200, {"version": "1.0.0"})


async def health():
    """Health check endpoint - used by monitoring/deployment tools"""
    return envelope("healthy", 200, {"status": "healthy"})


app.include_router(
    build_router(
        "",
        ["meta"],
        [
            RouteDefinition("/", root, public=True),
            RouteDefinition("/health", health, public=True),
        ],
    )
)
