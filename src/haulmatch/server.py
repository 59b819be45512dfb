"""
Haulmatch HTTP Server

FastAPI application exposing the dispatch core: submit jobs and providers,
request quotes, and read metrics, matches and insights. The orchestrator
loop runs as a background task for the lifetime of the application.

USAGE:
    Local: haulmatch serve (runs on http://127.0.0.1:8000)
    Docs: http://127.0.0.1:8000/docs (Swagger UI)
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from .clock import utcnow
from .config import settings
from .models import Insight, Job, Location, MarketSnapshot, MatchedPair, Provider, Quote
from .orchestrator import LoggingObserver, Orchestrator, OrchestratorMetrics, build_orchestrator
from .pricing import PricingEngine

logger = logging.getLogger(__name__)


# =============================================================================
# API Models (Request/Response Schemas)
# =============================================================================

class JobRequest(BaseModel):
    """A new transport request"""
    id: Optional[str] = Field(default=None, description="Client-side id (generated if omitted)")
    reference: Optional[str] = None
    pickup: Location
    delivery: Location
    distance_km: Optional[float] = Field(default=None, gt=0, description="Declared road distance")
    resource_class: Optional[str] = Field(default=None, description="e.g. 'VL', 'PL', 'SPL'")
    urgent: bool = False

    def to_job(self) -> Job:
        data = self.model_dump(exclude_none=True)
        return Job(**data)


class SubmissionResponse(BaseModel):
    """Acknowledgement for a queued record"""
    id: str
    queued: bool = True
    message: str


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    timestamp: str
    running: bool
    total_cycles: int


class StateResponse(BaseModel):
    """State sizes and the current market snapshot"""
    sizes: dict[str, int]
    market: Optional[MarketSnapshot] = None


# =============================================================================
# Dependencies
# =============================================================================

def get_orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


def _pricing_engine(orchestrator: Orchestrator) -> PricingEngine:
    """Engine of the registered pricing unit, so quotes match cycle prices."""
    for unit in orchestrator.units:
        engine = getattr(unit, "engine", None)
        if isinstance(engine, PricingEngine):
            return engine
    return PricingEngine()


router = APIRouter()


# =============================================================================
# Health & Status Endpoints
# =============================================================================

@router.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check(orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Health check endpoint for monitoring and load balancers."""
    metrics = orchestrator.get_metrics()
    return HealthResponse(
        status="running" if metrics.running else "idle",
        version=settings.APP_VERSION,
        timestamp=utcnow().isoformat(),
        running=metrics.running,
        total_cycles=metrics.total_cycles,
    )


@router.get("/metrics", response_model=OrchestratorMetrics, tags=["System"])
async def get_metrics(orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Cycle count, per-unit metrics, priorities and recent errors."""
    return orchestrator.get_metrics()


@router.get("/state", response_model=StateResponse, tags=["System"])
async def get_state(orchestrator: Orchestrator = Depends(get_orchestrator)):
    return StateResponse(sizes=orchestrator.state.sizes(), market=orchestrator.state.market)


# =============================================================================
# Data Endpoints
# =============================================================================

@router.get("/jobs", response_model=list[Job], tags=["Data"])
async def list_jobs(
    open_only: bool = Query(False, description="Only jobs still waiting for a provider"),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    state = orchestrator.state
    return state.open_jobs() if open_only else list(state.jobs)


@router.post(
    "/jobs",
    response_model=SubmissionResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["Data"],
)
async def submit_job(request: JobRequest, orchestrator: Orchestrator = Depends(get_orchestrator)):
    """
    Queue a job for the next cycle.

    The job is priced and matched by the running units; poll GET /jobs
    or GET /matches for the outcome.
    """
    if request.id is not None and orchestrator.state.get_job(request.id) is not None:
        raise HTTPException(status_code=409, detail=f"Job {request.id} already exists")

    job = request.to_job()
    orchestrator.submit_job(job)
    return SubmissionResponse(id=job.id, message="Job queued for the next cycle")


@router.post(
    "/providers",
    response_model=SubmissionResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["Data"],
)
async def submit_provider(provider: Provider, orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Queue a new provider, or a replacement for one with the same id."""
    orchestrator.submit_provider(provider)
    return SubmissionResponse(id=provider.id, message="Provider queued for the next cycle")


@router.get("/matches", response_model=list[MatchedPair], tags=["Data"])
async def list_matches(
    limit: int = Query(50, ge=1, le=1000, description="Most recent pairs to return"),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    return orchestrator.state.matched_pairs[-limit:]


@router.get("/insights", response_model=list[Insight], tags=["Data"])
async def list_insights(orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Insights from the last completed cycle."""
    return orchestrator.state.insights


# =============================================================================
# Pricing Endpoints
# =============================================================================

@router.post("/quote", response_model=Quote, tags=["Pricing"])
async def quote(request: JobRequest, orchestrator: Orchestrator = Depends(get_orchestrator)):
    """
    Price a job against the current market snapshot without queuing it.

    Example:
        ```json
        {
          "pickup": {"city": "Paris"},
          "delivery": {"city": "Lyon"},
          "distance_km": 465,
          "resource_class": "PL"
        }
        ```
    """
    engine = _pricing_engine(orchestrator)
    return engine.price(request.to_job(), orchestrator.state.market)


# =============================================================================
# FastAPI Application
# =============================================================================

def create_app(orchestrator: Optional[Orchestrator] = None, run_loop: bool = True) -> FastAPI:
    """
    Build the application.

    Args:
        orchestrator: Orchestrator to serve (pricing + matching units if None)
        run_loop: Start the cycle loop in the background on startup

    Returns:
        FastAPI application
    """
    orchestrator = orchestrator or build_orchestrator(observers=[LoggingObserver()])

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task: Optional[asyncio.Task[Any]] = None
        if run_loop:
            task = asyncio.create_task(orchestrator.start())
            logger.info("Orchestrator loop started in background")
        try:
            yield
        finally:
            if task is not None:
                started = orchestrator.is_running
                orchestrator.stop()
                if not started:
                    task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
                logger.info("Orchestrator loop stopped")

    app = FastAPI(
        title="Haulmatch API",
        description=(
            "Dispatch core API\n\n"
            "- Submit jobs and providers\n"
            "- Quote jobs against the live market snapshot\n"
            "- Read matches, insights and scheduler metrics"
        ),
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator
    app.include_router(router)
    return app


# =============================================================================
# Main Entry Point (for direct execution)
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host=settings.SERVER_HOST, port=settings.SERVER_PORT, log_level="info")
