from __future__ import annotations

"""
File: services/queue-optimizer-py/queue_optimizer/orchestrator.py
Purpose: Run orchestration around the GA optimizer.
Key responsibilities:
- Load eligible machines, pending jobs and the active GA configuration.
- Validate/merge configuration at the boundary.
- Run the optimizer and commit assignments best-effort, one item at a time.
Key entrypoints:
- run_optimization()
- resolve_config()
"""

import logging
import random
import time
from typing import Optional, Protocol, Sequence

from pydantic import ValidationError

from queue_optimizer.ga.chromosome import Chromosome
from queue_optimizer.ga.fitness import simulate_wait_times
from queue_optimizer.ga.optimizer import optimize_queue
from queue_optimizer.schemas import (
    MACHINE_TYPES,
    AssignmentRecord,
    FitnessBreakdown,
    GAConfig,
    GAConfigOverride,
    Job,
    MachineRef,
    OptimizationResult,
)
from queue_optimizer.settings import settings

logger = logging.getLogger("queue-optimizer")


class InvalidConfigurationError(ValueError):
    """Raised when a GA configuration fails boundary validation."""


class DataProvider(Protocol):
    def list_eligible_machines(self, machine_type: str) -> list[MachineRef]: ...

    def list_pending_jobs(self, machine_type: str) -> list[Job]: ...

    def count_pending_jobs(self, machine_type: str) -> int: ...

    def load_active_configuration(self) -> Optional[GAConfig]: ...


class AssignmentSink(Protocol):
    def commit_assignment(self, job_id: str, machine_id: str, position: int) -> bool: ...


def default_config() -> GAConfig:
    """GA defaults, overridable through GA_* environment variables."""
    return GAConfig.model_validate(
        {
            "population_size": settings.population_size,
            "generations": settings.generations,
            "crossover_rate": settings.crossover_rate,
            "mutation_rate": settings.mutation_rate,
            "elitism_count": settings.elitism_count,
            "tournament_size": settings.tournament_size,
            "weights": {
                "wait_time": settings.wait_time_weight,
                "utilization": settings.utilization_weight,
                "priority": settings.priority_weight,
            },
        }
    )


def resolve_config(
    override: Optional[GAConfigOverride] = None,
    active: Optional[GAConfig] = None,
) -> GAConfig:
    """Pick the run configuration and validate it.

    An explicit override is layered on the defaults; otherwise the active
    stored configuration is used, falling back to the defaults.
    """
    if override is None:
        config = active if active is not None else default_config()
        payload = config.model_dump()
    else:
        payload = default_config().model_dump()
        patch = override.model_dump(exclude_none=True)
        weights_patch = patch.pop("weights", None) or {}
        payload.update(patch)
        payload["weights"].update(weights_patch)

    try:
        config = GAConfig.model_validate(payload)
    except ValidationError as exc:
        raise InvalidConfigurationError(str(exc)) from exc

    if config.population_size > settings.max_population_size:
        raise InvalidConfigurationError(
            f"population_size {config.population_size} exceeds limit {settings.max_population_size}"
        )
    if config.generations > settings.max_generations:
        raise InvalidConfigurationError(
            f"generations {config.generations} exceeds limit {settings.max_generations}"
        )
    return config


def build_assignments(
    chromosome: Chromosome,
    jobs: Sequence[Job],
    machines: Sequence[MachineRef],
    cycle_time_min: float,
) -> list[AssignmentRecord]:
    """Map genes to assignment records carrying both wait estimates."""
    simulated = simulate_wait_times(chromosome, jobs, machines)
    return [
        AssignmentRecord(
            job_id=gene.job_id,
            machine_id=gene.machine_id,
            position=gene.position,
            estimated_wait_time_min=gene.position * cycle_time_min,
            simulated_wait_time_min=simulated.get(gene.job_id, 0.0),
        )
        for gene in chromosome.genes
    ]


def commit_assignments(sink: AssignmentSink, assignments: Sequence[AssignmentRecord]) -> list[str]:
    """Commit each assignment independently; return job ids that failed."""
    failed: list[str] = []
    for assignment in assignments:
        try:
            ok = sink.commit_assignment(assignment.job_id, assignment.machine_id, assignment.position)
        except Exception as exc:  # noqa: BLE001
            logger.exception("commit failed job_id=%s machine_id=%s err=%s", assignment.job_id, assignment.machine_id, exc)
            ok = False
        if ok:
            assignment.committed = True
        else:
            logger.warning("commit rejected job_id=%s machine_id=%s", assignment.job_id, assignment.machine_id)
            failed.append(assignment.job_id)
    return failed


def run_optimization(
    machine_type: str,
    provider: DataProvider,
    sink: AssignmentSink,
    config_override: Optional[GAConfigOverride] = None,
    rng: Optional[random.Random] = None,
    cycle_time_min: Optional[float] = None,
) -> OptimizationResult:
    """Load inputs, run the GA, persist the new queue order and report timing."""
    if machine_type not in MACHINE_TYPES:
        raise ValueError(f"unknown machine_type {machine_type!r}; expected one of {', '.join(MACHINE_TYPES)}")

    started = time.monotonic()
    machines = [m for m in provider.list_eligible_machines(machine_type) if m.status == "ACTIVE"]
    jobs = provider.list_pending_jobs(machine_type)
    active = None if config_override is not None else provider.load_active_configuration()
    config = resolve_config(config_override, active)
    cycle_time = cycle_time_min if cycle_time_min is not None else settings.default_cycle_time_min

    logger.info(
        "ga run machine_type=%s machines=%s jobs=%s population=%s generations=%s",
        machine_type,
        len(machines),
        len(jobs),
        config.population_size,
        config.generations,
    )
    outcome = optimize_queue(machines, jobs, config, rng if rng is not None else random.Random())

    assignments = build_assignments(outcome.best, jobs, machines, cycle_time)
    divergence = max(
        (abs(a.estimated_wait_time_min - a.simulated_wait_time_min) for a in assignments),
        default=0.0,
    )
    if divergence > 0:
        logger.info("wait estimate divergence machine_type=%s max_minutes=%.2f", machine_type, divergence)

    failed = commit_assignments(sink, assignments)
    execution_time_ms = int((time.monotonic() - started) * 1000)

    logger.info(
        "ga run done machine_type=%s assignments=%s failed=%s fitness=%.6f elapsed_ms=%s",
        machine_type,
        len(assignments),
        len(failed),
        outcome.fitness.total,
        execution_time_ms,
    )
    return OptimizationResult(
        machine_type=machine_type,
        assignments=assignments,
        fitness=FitnessBreakdown(
            total=outcome.fitness.total,
            wait_time_score=outcome.fitness.wait_time_score,
            utilization_score=outcome.fitness.utilization_score,
            priority_score=outcome.fitness.priority_score,
        ),
        generations=outcome.generations,
        execution_time_ms=execution_time_ms,
        failed_commits=failed,
        wait_time_divergence_min=divergence,
    )
