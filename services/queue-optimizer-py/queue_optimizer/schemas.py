from __future__ import annotations

"""
File: services/queue-optimizer-py/queue_optimizer/schemas.py
Purpose: Pydantic models for optimizer inputs, configuration and results.
Key responsibilities:
- Describe jobs, machines and GA configuration snapshots.
- Validate configuration bounds at the service boundary.
- Define assignment/result schema and /optimize request/response contracts.
Key entrypoints:
- Job, MachineRef, GAConfig, OptimizationResult
- OptimizeRequest, OptimizeResponse
"""

from typing import Optional

from pydantic import BaseModel, Field, model_validator


MACHINE_TYPES: tuple[str, ...] = ("VMM", "CMM")

PRIORITY_MAP: dict[str, int] = {
    "HIGH": 3,
    "MEDIUM": 2,
    "LOW": 1,
}


def priority_ordinal(label: str | None) -> int:
    """Map a priority label to its ordinal; unknown labels count as LOW."""
    if label is None:
        return 1
    return PRIORITY_MAP.get(str(label).upper(), 1)


class Job(BaseModel):
    """Pending inspection job snapshot used by the optimizer."""
    id: str
    priority: int = Field(default=1, ge=1)
    estimated_duration_min: float = Field(gt=0)


class MachineRef(BaseModel):
    """Measurement machine snapshot used by the optimizer."""
    id: str
    cycle_time_min: float = 15.0
    status: str = "ACTIVE"


class GAWeights(BaseModel):
    """Weights of the linear fitness combination (need not sum to 1)."""
    wait_time: float = Field(default=0.4, ge=0)
    utilization: float = Field(default=0.3, ge=0)
    priority: float = Field(default=0.3, ge=0)


class GAConfig(BaseModel):
    """Tunable GA parameters for a single optimization run."""
    population_size: int = Field(default=50, ge=1)
    generations: int = Field(default=100, ge=0)
    crossover_rate: float = Field(default=0.8, ge=0, le=1)
    mutation_rate: float = Field(default=0.15, ge=0, le=1)
    elitism_count: int = Field(default=2, ge=0)
    tournament_size: int = Field(default=3, ge=1)
    weights: GAWeights = Field(default_factory=GAWeights)

    @model_validator(mode="after")
    def _elitism_within_population(self) -> "GAConfig":
        if self.elitism_count > self.population_size:
            raise ValueError("elitism_count must not exceed population_size")
        return self


class GAWeightsOverride(BaseModel):
    """Partial weights supplied by a caller."""
    wait_time: Optional[float] = None
    utilization: Optional[float] = None
    priority: Optional[float] = None


class GAConfigOverride(BaseModel):
    """Partial configuration supplied by a caller; unset fields keep defaults."""
    population_size: Optional[int] = None
    generations: Optional[int] = None
    crossover_rate: Optional[float] = None
    mutation_rate: Optional[float] = None
    elitism_count: Optional[int] = None
    tournament_size: Optional[int] = None
    weights: Optional[GAWeightsOverride] = None


class FitnessBreakdown(BaseModel):
    """Weighted total plus the three sub-scores of a chromosome."""
    total: float = 0.0
    wait_time_score: float = 0.0
    utilization_score: float = 0.0
    priority_score: float = 0.0


class AssignmentRecord(BaseModel):
    """Queue placement for a single job.

    ``estimated_wait_time_min`` is the display estimate (position times the
    default cycle time); ``simulated_wait_time_min`` is the single-server
    wait the fitness evaluator computes. The two are reported side by side.
    """
    job_id: str
    machine_id: str
    position: int
    estimated_wait_time_min: float
    simulated_wait_time_min: float
    committed: bool = False


class OptimizationResult(BaseModel):
    """Outcome of one orchestrated optimization run."""
    machine_type: str
    assignments: list[AssignmentRecord]
    fitness: FitnessBreakdown
    generations: int
    execution_time_ms: int
    failed_commits: list[str] = Field(default_factory=list)
    wait_time_divergence_min: float = 0.0


class OptimizeRequest(BaseModel):
    """Request body for /optimize (snapshot mode, nothing is persisted)."""
    machines: list[MachineRef]
    jobs: list[Job]
    config: Optional[GAConfigOverride] = None
    seed: Optional[int] = None


class OptimizeResponse(BaseModel):
    """Response payload from /optimize."""
    assignments: list[AssignmentRecord]
    fitness: FitnessBreakdown
    meta: dict[str, object]


class ManualOptimizeRequest(BaseModel):
    """Request body for /queues/{machine_type}/optimize."""
    config: Optional[GAConfigOverride] = None
    seed: Optional[int] = None
