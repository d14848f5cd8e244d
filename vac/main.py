"""
Vehicle as Code - FastAPI Application

Main entry point for the Vehicle as Code API.
Provides endpoints for validating configurations, previewing plans,
applying them and inspecting the recorded vehicle state.
"""

from __future__ import annotations
import asyncio
import logging
import os
from collections import deque
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Deque, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.responses import JSONResponse

from vac import __version__
from vac.adapters import AdapterFactory
from vac.engine import ReconciliationEngine, render_plan
from vac.errors import CycleError, DependencyError, StalePlanError, ValidationError
from vac.models import (
    ApplyResult,
    DocumentRequest,
    DriftReport,
    Plan,
    PlanResponse,
    StateSnapshot,
    ValidateResponse,
)
from vac.storage import JsonStateStore, get_storage

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION SETUP
# =============================================================================

_engine: Optional[ReconciliationEngine] = None


def get_engine() -> ReconciliationEngine:
    """Application-wide engine (JSON state store + VAC_ADAPTER adapter)."""
    global _engine
    if _engine is None:
        adapter_type = os.environ.get("VAC_ADAPTER", "simulated")
        _engine = ReconciliationEngine(
            state_store=get_storage(),
            adapter=AdapterFactory.create(adapter_type),
        )
        logger.info(f"Engine created with '{adapter_type}' adapter")
    return _engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Vehicle as Code starting...")
    yield
    logger.info("Vehicle as Code shutting down...")


app = FastAPI(
    title="Vehicle as Code",
    description="""
    ## Declarative Vehicle Configuration

    This API provides endpoints for:
    - **Validating** vehicle configuration documents
    - **Planning** changes against the last applied state (dry run)
    - **Applying** reviewed plans to the vehicle
    - **Inspecting** recorded state and drift

    ### Workflow
    1. Submit YAML configuration via POST /plans
    2. Review the returned operations
    3. Apply via POST /plans/{plan_id}/apply
    4. Inspect the result via GET /state
    """,
    version=__version__,
    lifespan=lifespan,
)

# Plans awaiting review/apply (oldest evicted first), and ids of plans
# the executor has consumed
MAX_PENDING_PLANS = 100
MAX_APPLIED_PLANS = 1000

pending_plans: Dict[str, Plan] = {}
applied_plans: Deque[str] = deque(maxlen=MAX_APPLIED_PLANS)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _bad_request(message: str, errors) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={
            "error": "Configuration rejected",
            "message": message,
            "errors": errors,
        },
    )


def _plan_response(plan: Plan) -> PlanResponse:
    return PlanResponse(
        plan_id=plan.plan_id,
        base_fingerprint=plan.base_fingerprint,
        base_generation=plan.base_generation,
        target_fingerprint=plan.target.fingerprint(),
        counts=plan.counts(),
        operations=plan.operations,
        preview=render_plan(plan),
    )


# =============================================================================
# API ENDPOINTS
# =============================================================================

@app.get("/", tags=["Health"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Vehicle as Code",
        "version": __version__,
        "status": "running",
        "endpoints": {
            "validate": "POST /validate",
            "create_plan": "POST /plans",
            "apply_plan": "POST /plans/{plan_id}/apply",
            "get_state": "GET /state",
            "get_drift": "GET /drift",
        },
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "pending_plans": len(pending_plans),
    }


@app.post(
    "/validate",
    response_model=ValidateResponse,
    tags=["Plans"],
    summary="Validate a configuration document",
)
async def validate_document(
    request: DocumentRequest,
    engine: ReconciliationEngine = Depends(get_engine),
) -> ValidateResponse:
    """
    Return every error that would make POST /plans reject the document:
    schema issues, unresolved dependencies and dependency cycles.
    """
    try:
        document = engine.validator.load_document(request.config_yaml)
    except ValidationError as e:
        return ValidateResponse(valid=False, errors=e.errors)

    errors = engine.check(document)
    return ValidateResponse(valid=not errors, errors=errors)


@app.post(
    "/plans",
    response_model=PlanResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Plans"],
    summary="Compute a plan (dry run)",
)
async def create_plan(
    request: DocumentRequest,
    engine: ReconciliationEngine = Depends(get_engine),
) -> PlanResponse:
    """
    Compute the operations needed to reach the submitted configuration.

    Nothing is applied. The plan is kept for review and can be applied
    once via POST /plans/{plan_id}/apply.
    """
    try:
        document = engine.validator.load_document(request.config_yaml)
        plan = engine.plan(document)
    except (ValidationError, DependencyError, CycleError) as e:
        raise _bad_request(e.message, e.errors)

    pending_plans[plan.plan_id] = plan
    while len(pending_plans) > MAX_PENDING_PLANS:
        evicted = next(iter(pending_plans))
        del pending_plans[evicted]
        logger.info(f"Evicted unapplied plan {evicted}")
    if isinstance(engine.state_store, JsonStateStore):
        engine.state_store.save_plan(plan)

    logger.info(f"Plan {plan.plan_id} created with {len(plan.operations)} operations")
    return _plan_response(plan)


@app.get(
    "/plans/{plan_id}",
    response_model=PlanResponse,
    tags=["Plans"],
    summary="Get a pending plan",
)
async def get_plan(plan_id: str) -> PlanResponse:
    """Get a plan that has not been applied yet."""
    plan = pending_plans.get(plan_id)
    if plan is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Plan not found: {plan_id}",
        )
    return _plan_response(plan)


@app.post(
    "/plans/{plan_id}/apply",
    response_model=ApplyResult,
    tags=["Plans"],
    summary="Apply a pending plan",
)
async def apply_plan(
    plan_id: str,
    engine: ReconciliationEngine = Depends(get_engine),
) -> ApplyResult:
    """
    Apply a reviewed plan to the vehicle.

    A plan is single-use. Plans computed against state that has since
    changed are rejected with 409 and discarded; they must be recomputed.
    """
    if plan_id in applied_plans:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Plan {plan_id} has already been applied",
        )
    plan = pending_plans.pop(plan_id, None)
    if plan is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Plan not found: {plan_id}",
        )

    # Run in thread pool to not block event loop
    loop = asyncio.get_running_loop()
    try:
        result = await loop.run_in_executor(None, lambda: engine.apply(plan))
    except StalePlanError as e:
        logger.warning(f"Rejected stale plan {plan_id}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=e.message,
        )
    finally:
        if plan.consumed:
            applied_plans.append(plan_id)

    if isinstance(engine.state_store, JsonStateStore):
        engine.state_store.save_result(result)
    return result


@app.get(
    "/state",
    response_model=StateSnapshot,
    tags=["State"],
    summary="Get the latest recorded state",
)
async def get_state(engine: ReconciliationEngine = Depends(get_engine)) -> StateSnapshot:
    """Latest snapshot; 404 before the first successful apply."""
    snapshot = engine.latest_snapshot()
    if snapshot.generation == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No state recorded yet",
        )
    return snapshot


@app.get(
    "/drift",
    response_model=DriftReport,
    tags=["State"],
    summary="Compare live vehicle state with the recorded state",
)
async def get_drift(engine: ReconciliationEngine = Depends(get_engine)) -> DriftReport:
    """Report out-of-band changes on the vehicle."""
    return engine.check_drift()


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(Exception)
async def global_exception_handler(request, exc: Exception):
    """Global exception handler."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": str(exc),
        },
    )


# =============================================================================
# MAIN
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "vac.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
