"""
Mshahara Payroll - Main Application Entry Point

Tanzanian payroll computation and statutory filing API.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from backend.config import get_settings
from backend.db.session import async_session_factory, engine
from backend.routers.v1 import benefits_in_kind, filings, payments, payroll

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize Sentry for error monitoring
if settings.sentry_dsn:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"mshahara@{settings.app_version}",
        traces_sample_rate=0.1 if settings.environment == "production" else 1.0,
        integrations=[
            FastApiIntegration(),
            SqlalchemyIntegration(),
        ],
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    # Database connection pool is lazy-initialized by SQLAlchemy
    logger.info("Starting %s %s (%s)", settings.app_name, settings.app_version, settings.environment)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description=(
        "Monthly payroll under Tanzanian statutory rules: PAYE, NSSF, SDL and "
        "benefits in kind, with retry-safe payroll runs, statutory filings and payment batches."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
    openapi_url="/api/openapi.json" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check endpoints
@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "mshahara-api"}


@app.get("/health/ready", tags=["Health"])
async def readiness_check() -> dict[str, str]:
    """Readiness check with database verification."""
    async with async_session_factory() as session:
        await session.execute(text("SELECT 1"))
    return {
        "status": "ready",
        "service": "mshahara-api",
        "version": settings.app_version,
        "environment": settings.environment,
    }


# API v1 routes
company_prefix = f"{settings.api_v1_prefix}/companies/{{company_id}}"

app.include_router(
    payroll.router,
    prefix=f"{company_prefix}/payroll",
    tags=["Payroll"],
)
app.include_router(
    benefits_in_kind.router,
    prefix=f"{company_prefix}/benefits-in-kind",
    tags=["Benefits in Kind"],
)
app.include_router(
    filings.router,
    prefix=f"{company_prefix}/filings",
    tags=["Filings"],
)
app.include_router(
    payments.router,
    prefix=f"{company_prefix}/payments/batches",
    tags=["Payments"],
)
