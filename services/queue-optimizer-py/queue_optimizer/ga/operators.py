from __future__ import annotations

"""
File: services/queue-optimizer-py/queue_optimizer/ga/operators.py
Purpose: Genetic operators (init, selection, crossover, mutation).
Key responsibilities:
- Biased random construction of fully-assigned chromosomes
- Tournament selection with first-drawn tie-breaks
- Order crossover and swap/reassignment mutation with dense renumbering
All randomness comes from the caller's random.Random.
"""

from typing import Sequence
import random

from queue_optimizer.ga.chromosome import Chromosome, Gene, renumber_positions
from queue_optimizer.ga.fitness import FitnessResult
from queue_optimizer.schemas import Job, MachineRef

GREEDY_MACHINE_PROBABILITY = 0.7

Evaluated = tuple[Chromosome, FitnessResult]


def _pick_machine(machines: Sequence[MachineRef], counts: dict[str, int], rng: random.Random) -> str:
    """Shortest queue most of the time, uniform pick otherwise for diversity."""
    if rng.random() < GREEDY_MACHINE_PROBABILITY:
        return min(machines, key=lambda m: counts[m.id]).id
    return machines[rng.randrange(len(machines))].id


def random_chromosome(jobs: Sequence[Job], machines: Sequence[MachineRef], rng: random.Random) -> Chromosome:
    """Build one valid chromosome from a shuffled job order."""
    shuffled = list(jobs)
    rng.shuffle(shuffled)
    counts = {m.id: 0 for m in machines}

    genes: list[Gene] = []
    for job in shuffled:
        machine_id = _pick_machine(machines, counts, rng)
        counts[machine_id] += 1
        genes.append(Gene(job_id=job.id, machine_id=machine_id, position=counts[machine_id]))
    return Chromosome(genes=genes)


def initialize_population(
    population_size: int,
    jobs: Sequence[Job],
    machines: Sequence[MachineRef],
    rng: random.Random,
) -> list[Chromosome]:
    """Create the initial population of chromosomes."""
    return [random_chromosome(jobs, machines, rng) for _ in range(population_size)]


def tournament_select(
    evaluated: Sequence[Evaluated],
    tournament_size: int,
    rng: random.Random,
) -> Evaluated:
    """Select a parent using tournament selection (draws with replacement)."""
    best = evaluated[rng.randrange(len(evaluated))]
    for _ in range(1, tournament_size):
        contender = evaluated[rng.randrange(len(evaluated))]
        if contender[1].total > best[1].total:
            best = contender
    return best


def order_crossover(parent_a: Sequence[Gene], parent_b: Sequence[Gene], start: int, end: int) -> list[Gene]:
    """Keep parent_a[start..end] in place, fill the rest in parent_b order."""
    size = len(parent_a)
    child: list[Gene | None] = [None] * size
    used: set[str] = set()

    for idx in range(start, end + 1):
        child[idx] = parent_a[idx]
        used.add(parent_a[idx].job_id)

    fill_idx = (end + 1) % size
    for offset in range(size):
        gene = parent_b[(end + 1 + offset) % size]
        if gene.job_id in used:
            continue
        while child[fill_idx] is not None:
            fill_idx = (fill_idx + 1) % size
        child[fill_idx] = gene
        used.add(gene.job_id)

    return renumber_positions(g for g in child if g is not None)


def crossover(
    parent_a: Chromosome,
    parent_b: Chromosome,
    crossover_rate: float,
    rng: random.Random,
) -> tuple[Chromosome, Chromosome]:
    """Order crossover producing two children; skipped with probability 1 - rate."""
    if rng.random() >= crossover_rate:
        return parent_a.copy(), parent_b.copy()

    size = len(parent_a.genes)
    if size < 2:
        return parent_a.copy(), parent_b.copy()

    start = rng.randrange(size)
    end = start + rng.randrange(size - start)

    child_a = Chromosome(genes=order_crossover(parent_a.genes, parent_b.genes, start, end))
    child_b = Chromosome(genes=order_crossover(parent_b.genes, parent_a.genes, start, end))
    return child_a, child_b


def mutate(
    chromosome: Chromosome,
    machines: Sequence[MachineRef],
    mutation_rate: float,
    rng: random.Random,
) -> Chromosome:
    """Swap or reassignment mutation, applied with probability mutation_rate."""
    if rng.random() >= mutation_rate:
        return chromosome
    if not chromosome.genes:
        return chromosome

    genes = list(chromosome.genes)
    size = len(genes)

    if rng.random() < 0.5:
        i = rng.randrange(size)
        j = rng.randrange(size)
        genes[i], genes[j] = genes[j], genes[i]
    else:
        idx = rng.randrange(size)
        current = genes[idx].machine_id
        others = [m for m in machines if m.id != current]
        if others:
            target = others[rng.randrange(len(others))]
            genes[idx] = Gene(job_id=genes[idx].job_id, machine_id=target.id, position=genes[idx].position)

    return Chromosome(genes=renumber_positions(genes))
