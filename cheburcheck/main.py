"""
Cheburcheck - FastAPI Application

Main entry point for the measurement intake and whitelist service.

Architecture:
- Probe report → Report Intake → Evidence Store (write path)
- Evidence Store + Domain Ranks → Consensus Engine → Whitelist snapshot (derive path)
- Whitelist snapshot → query / export endpoints (read path)
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import LOG_LEVEL, WHITELIST_REFRESH_SECONDS
from .database import init_db
from .dependencies import whitelist_builder
from .routers import agency_router, whitelist_router, internal_router, queries_router
from .services.consensus import WhitelistRefresher

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database and the whitelist refresher on startup."""
    logging.basicConfig(level=getattr(logging, LOG_LEVEL.upper(), logging.INFO))
    init_db()

    refresher = None
    if WHITELIST_REFRESH_SECONDS > 0:
        refresher = WhitelistRefresher(whitelist_builder, WHITELIST_REFRESH_SECONDS)
        refresher.start()
    else:
        logger.info("Background refresh disabled, waiting for /internal/whitelist/recompute")

    yield

    if refresher is not None:
        refresher.stop()

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="Cheburcheck",
    description="""
    Cheburcheck - Reachability Evidence & Whitelist Service

    Collects per-domain reachability reports from trusted probe agencies and
    derives a whitelist of domains that are currently reachable.

    ## Pipeline
    1. **Report Intake**: authenticated probe report → reports + evidence rows
    2. **Consensus Engine**: 5 most recent trusted rows per domain → majority vote
    3. **Whitelist**: ranked snapshot, replaced atomically on each recompute

    ## Key Principles
    - Evidence rows are immutable and owned by their report
    - Only trusted reporters count toward the whitelist
    - Recomputation is decoupled from uploads
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(agency_router)
app.include_router(whitelist_router)
app.include_router(internal_router)
app.include_router(queries_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Cheburcheck",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/healthcheck")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


# For running with: python -m cheburcheck.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
