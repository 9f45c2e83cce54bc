import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from punt.config import settings
from punt.database import Base, engine
from punt.middleware.exceptions import register_exception_handlers
from punt.routers import admin, auth, health, members, permissions, projects, roles

import punt.models  # noqa: F401  (registers tables on Base.metadata)

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.auto_create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured")
    yield
    await engine.dispose()


app = FastAPI(
    title="Punt",
    description="Project permissions and roles service",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(permissions.router, prefix="/api/permissions", tags=["permissions"])
app.include_router(projects.router, prefix="/api/projects", tags=["projects"])
app.include_router(roles.router, prefix="/api/projects", tags=["roles"])
app.include_router(members.router, prefix="/api/projects", tags=["members"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
