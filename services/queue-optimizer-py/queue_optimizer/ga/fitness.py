from __future__ import annotations

"""
File: services/queue-optimizer-py/queue_optimizer/ga/fitness.py
Purpose: Fitness evaluation for queue-assignment chromosomes.
Key responsibilities:
- Simulate per-machine single-server queues to get job wait times.
- Score wait time, machine-load balance and priority ordering.
- Return the weighted total and the three sub-scores.
"""

from dataclasses import dataclass
from typing import Sequence

from queue_optimizer.ga.chromosome import Chromosome
from queue_optimizer.schemas import GAWeights, Job, MachineRef


@dataclass
class FitnessResult:
    total: float
    wait_time_score: float
    utilization_score: float
    priority_score: float


def zero_fitness() -> FitnessResult:
    """Fitness reported when there is nothing to optimize."""
    return FitnessResult(total=0.0, wait_time_score=0.0, utilization_score=0.0, priority_score=0.0)


def simulate_wait_times(
    chromosome: Chromosome,
    jobs: Sequence[Job],
    machines: Sequence[MachineRef] | None = None,
) -> dict[str, float]:
    """Return each job's wait (minutes) when machines drain queues in position order."""
    jobs_by_id = {job.id: job for job in jobs}
    machine_ids = {m.id for m in machines} if machines is not None else None

    machine_time: dict[str, float] = {}
    waits: dict[str, float] = {}
    for gene in sorted(chromosome.genes, key=lambda g: g.position):
        job = jobs_by_id.get(gene.job_id)
        if job is None:
            continue
        if machine_ids is not None and gene.machine_id not in machine_ids:
            continue
        start = machine_time.get(gene.machine_id, 0.0)
        waits[gene.job_id] = start
        machine_time[gene.machine_id] = start + job.estimated_duration_min
    return waits


def wait_time_score(chromosome: Chromosome, machines: Sequence[MachineRef], jobs: Sequence[Job]) -> float:
    """1 - total wait over a generous n * max_duration * n ceiling."""
    total_wait = sum(simulate_wait_times(chromosome, jobs, machines).values())
    max_duration = max((job.estimated_duration_min for job in jobs), default=0.0)
    max_possible_wait = len(jobs) * max_duration * len(jobs)
    if max_possible_wait <= 0:
        return 1.0
    return 1.0 - total_wait / max_possible_wait


def utilization_score(chromosome: Chromosome, machines: Sequence[MachineRef], jobs: Sequence[Job]) -> float:
    """1 - population variance of per-machine job counts over n^2 / 4."""
    counts: dict[str, int] = {m.id: 0 for m in machines}
    for gene in chromosome.genes:
        counts[gene.machine_id] = counts.get(gene.machine_id, 0) + 1
    if not counts:
        return 1.0

    values = list(counts.values())
    mean = sum(values) / len(values)
    variance = sum((c - mean) ** 2 for c in values) / len(values)
    max_variance = len(jobs) ** 2 / 4
    if max_variance <= 0:
        return 1.0
    return 1.0 - variance / max_variance


def priority_score(chromosome: Chromosome, jobs: Sequence[Job]) -> float:
    """Reward high-priority jobs sitting at small queue positions."""
    jobs_by_id = {job.id: job for job in jobs}
    score = 0.0
    total = 0.0
    for gene in chromosome.genes:
        job = jobs_by_id.get(gene.job_id)
        if job is None:
            continue
        score += job.priority / gene.position
        total += job.priority
    if total <= 0:
        return 1.0
    return score / total


def evaluate_chromosome(
    chromosome: Chromosome,
    machines: Sequence[MachineRef],
    jobs: Sequence[Job],
    weights: GAWeights,
) -> FitnessResult:
    """Evaluate a chromosome and return the weighted total + sub-scores."""
    wait = wait_time_score(chromosome, machines, jobs)
    utilization = utilization_score(chromosome, machines, jobs)
    priority = priority_score(chromosome, jobs)
    total = (
        weights.wait_time * wait
        + weights.utilization * utilization
        + weights.priority * priority
    )
    return FitnessResult(
        total=total,
        wait_time_score=wait,
        utilization_score=utilization,
        priority_score=priority,
    )
