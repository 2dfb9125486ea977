from __future__ import annotations

"""
File: services/queue-optimizer-py/queue_optimizer/main.py
Purpose: FastAPI entrypoint for the inspection queue GA optimizer.
Key responsibilities:
- Expose /health.
- /optimize: run the GA on a caller-supplied snapshot (nothing persisted).
- /queues/{machine_type}/optimize: manual orchestrated run against MySQL.
Key entrypoints:
- health()
- optimize()
- optimize_queue_for_type()
Config/env vars:
- OPTIMIZER_HOST, OPTIMIZER_PORT
- GA_* defaults and GA_MAX_* caps
- DEFAULT_CYCLE_TIME_MIN, MYSQL_*
"""

import logging
import random

from fastapi import Depends, FastAPI, HTTPException

from queue_optimizer.db import MySQLAssignmentSink, MySQLDataProvider
from queue_optimizer.ga.optimizer import optimize_queue
from queue_optimizer.orchestrator import (
    AssignmentSink,
    DataProvider,
    InvalidConfigurationError,
    build_assignments,
    resolve_config,
    run_optimization,
)
from queue_optimizer.schemas import (
    FitnessBreakdown,
    ManualOptimizeRequest,
    OptimizationResult,
    OptimizeRequest,
    OptimizeResponse,
)
from queue_optimizer.settings import settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s queue-optimizer %(message)s")
logger = logging.getLogger("queue-optimizer")

app = FastAPI(title="queue-optimizer", version="1.0.0")


def get_provider() -> DataProvider:
    return MySQLDataProvider()


def get_sink() -> AssignmentSink:
    return MySQLAssignmentSink()


@app.get("/health")
def health() -> dict[str, str]:
    """Liveness/readiness check for the optimizer service."""
    return {"status": "ok"}


@app.post("/optimize", response_model=OptimizeResponse)
def optimize(req: OptimizeRequest) -> OptimizeResponse:
    """Run GA optimization on the posted snapshot and return assignments + metadata."""
    try:
        config = resolve_config(req.config)
    except InvalidConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    machines = [m for m in req.machines if m.status == "ACTIVE"]
    outcome = optimize_queue(machines, req.jobs, config, random.Random(req.seed))
    assignments = build_assignments(outcome.best, req.jobs, machines, settings.default_cycle_time_min)
    meta = {
        "generations": outcome.generations,
        "population_size": config.population_size,
        "seed": req.seed,
    }
    return OptimizeResponse(
        assignments=assignments,
        fitness=FitnessBreakdown(
            total=outcome.fitness.total,
            wait_time_score=outcome.fitness.wait_time_score,
            utilization_score=outcome.fitness.utilization_score,
            priority_score=outcome.fitness.priority_score,
        ),
        meta=meta,
    )


@app.post("/queues/{machine_type}/optimize", response_model=OptimizationResult)
def optimize_queue_for_type(
    machine_type: str,
    req: ManualOptimizeRequest | None = None,
    provider: DataProvider = Depends(get_provider),
    sink: AssignmentSink = Depends(get_sink),
) -> OptimizationResult:
    """Manually re-optimize one machine type's queue and persist the result."""
    override = req.config if req is not None else None
    seed = req.seed if req is not None else None
    try:
        return run_optimization(
            machine_type,
            provider,
            sink,
            config_override=override,
            rng=random.Random(seed) if seed is not None else None,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
