from __future__ import annotations

"""
File: services/queue-optimizer-py/queue_optimizer/ga/optimizer.py
Purpose: Generational GA loop for inspection queue assignment.
Key responsibilities:
- Initialize population
- Evaluate fitness, carry elites, breed the remainder
- Track the best-ever chromosome across generations
"""

from dataclasses import dataclass, field
import logging
import random
from typing import Sequence

from queue_optimizer.ga.chromosome import Chromosome
from queue_optimizer.ga.fitness import FitnessResult, evaluate_chromosome, zero_fitness
from queue_optimizer.ga.operators import Evaluated, crossover, initialize_population, mutate, tournament_select
from queue_optimizer.schemas import GAConfig, Job, MachineRef

logger = logging.getLogger("queue-optimizer.ga")


@dataclass
class OptimizerOutcome:
    best: Chromosome
    fitness: FitnessResult
    generations: int
    best_history: list[float] = field(default_factory=list)


def _evaluate_all(
    population: Sequence[Chromosome],
    machines: Sequence[MachineRef],
    jobs: Sequence[Job],
    config: GAConfig,
) -> list[Evaluated]:
    """Score every chromosome and cache the total on it."""
    evaluated: list[Evaluated] = []
    for chromosome in population:
        fit = evaluate_chromosome(chromosome, machines, jobs, config.weights)
        chromosome.fitness = fit.total
        evaluated.append((chromosome, fit))
    return evaluated


def _best_of(evaluated: Sequence[Evaluated]) -> Chromosome:
    """First chromosome with the strictly highest total."""
    best, best_fit = evaluated[0]
    for chromosome, fit in evaluated[1:]:
        if fit.total > best_fit.total:
            best, best_fit = chromosome, fit
    return best.copy()


def optimize_queue(
    machines: Sequence[MachineRef],
    jobs: Sequence[Job],
    config: GAConfig,
    rng: random.Random,
) -> OptimizerOutcome:
    """Run the GA and return the best-ever chromosome with its fitness breakdown."""
    if not jobs or not machines:
        return OptimizerOutcome(best=Chromosome(), fitness=zero_fitness(), generations=0)

    population = initialize_population(config.population_size, jobs, machines, rng)
    evaluated = _evaluate_all(population, machines, jobs, config)
    best_ever = _best_of(evaluated)
    history = [best_ever.fitness]

    for generation in range(config.generations):
        evaluated.sort(key=lambda row: row[1].total, reverse=True)

        next_population: list[Chromosome] = [row[0].copy() for row in evaluated[: config.elitism_count]]

        while len(next_population) < config.population_size:
            parent_a, _ = tournament_select(evaluated, config.tournament_size, rng)
            parent_b, _ = tournament_select(evaluated, config.tournament_size, rng)

            child_a, child_b = crossover(parent_a, parent_b, config.crossover_rate, rng)
            next_population.append(mutate(child_a, machines, config.mutation_rate, rng))
            if len(next_population) < config.population_size:
                next_population.append(mutate(child_b, machines, config.mutation_rate, rng))

        population = next_population
        evaluated = _evaluate_all(population, machines, jobs, config)

        current_best = _best_of(evaluated)
        if current_best.fitness > best_ever.fitness:
            best_ever = current_best
        history.append(best_ever.fitness)
        logger.debug("generation=%s best=%.6f", generation + 1, best_ever.fitness)

    fitness = evaluate_chromosome(best_ever, machines, jobs, config.weights)
    best_ever.fitness = fitness.total
    logger.info(
        "ga finished jobs=%s machines=%s generations=%s best=%.6f",
        len(jobs),
        len(machines),
        config.generations,
        fitness.total,
    )
    return OptimizerOutcome(
        best=best_ever,
        fitness=fitness,
        generations=config.generations,
        best_history=history,
    )
