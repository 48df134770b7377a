"""
FastAPI backend for the offshore logistics KPI engine.

Provides REST API endpoints for:
- Record batch loading (JSON and spreadsheet/CSV uploads)
- KPI computation by period, location and department
- Fluid movement consolidation and budget vs actual
- Data integrity reports
- Facility registry and location resolution

Version: 1.0.0
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
import uvicorn

from api.config import settings
from api.health import API_VERSION
from api.middleware import setup_middleware
from api.rate_limit import limiter
from api.routers import batch, facilities, integrity, kpi, system
from api.state import get_app_state

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(message)s',  # JSON logs are self-contained
)
logger = logging.getLogger(__name__)


# =============================================================================
# Application Factory
# =============================================================================

def create_app() -> FastAPI:
    """
    Application factory for the logistics KPI API.

    Returns:
        FastAPI: Configured application instance
    """
    application = FastAPI(
        title="Logistics KPI API",
        description="""
## Offshore Vessel Logistics KPIs

Reconciles voyage events, manifests, cost allocation, bulk fluid actions
and voyage lists into filterable KPIs.

### Filters
- Period: all time, a month, or year-to-date
- Location: any registry facility (children included)
- Department: All, Drilling or Production

### Rate Limiting
- Configurable requests per minute
- 10 uploads per minute
        """,
        version=API_VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    setup_middleware(
        application,
        debug=settings.is_development,
        enable_hsts=settings.is_production,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.cors_credentials,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    application.state.limiter = limiter

    @application.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=429,
            content={
                "error": "Rate limit exceeded",
                "detail": str(exc.detail),
                "retry_after": getattr(exc, 'retry_after', 60),
            },
            headers={"Retry-After": str(getattr(exc, 'retry_after', 60))},
        )

    @application.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})

    @application.on_event("startup")
    async def startup_event():
        """Load the facility registry and vessel directory."""
        registry = get_app_state().load_reference_data(settings.facility_registry_path)
        logger.info(f"Startup complete: {len(registry)} facilities")

    application.include_router(system.router)
    application.include_router(facilities.router)
    application.include_router(batch.router)
    application.include_router(kpi.router)
    application.include_router(integrity.router)

    return application


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors without non-serialisable context objects."""
    return [
        {k: v for k, v in error.items() if k in ("type", "loc", "msg")}
        for error in exc.errors()
    ]


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )
