from collections import defaultdict
import random

import pytest

from queue_optimizer.ga import optimizer as optimizer_module
from queue_optimizer.ga.fitness import evaluate_chromosome
from queue_optimizer.ga.operators import initialize_population
from queue_optimizer.ga.optimizer import optimize_queue
from queue_optimizer.schemas import GAConfig, Job, MachineRef


def _genes(outcome):
    return [(g.job_id, g.machine_id, g.position) for g in outcome.best.genes]


def test_optimizer_deterministic_for_seed(jobs, machines, small_config):
    outcome_a = optimize_queue(machines, jobs, small_config, random.Random(42))
    outcome_b = optimize_queue(machines, jobs, small_config, random.Random(42))

    assert _genes(outcome_a) == _genes(outcome_b)
    assert outcome_a.fitness == outcome_b.fitness
    assert outcome_a.best_history == outcome_b.best_history


def test_best_ever_never_decreases(jobs, machines):
    config = GAConfig(population_size=12, generations=25, elitism_count=0, mutation_rate=0.5)
    outcome = optimize_queue(machines, jobs, config, random.Random(9))

    assert len(outcome.best_history) == config.generations + 1
    assert all(b >= a for a, b in zip(outcome.best_history, outcome.best_history[1:]))
    assert outcome.fitness.total == pytest.approx(outcome.best_history[-1])


def test_best_chromosome_is_valid_assignment(jobs, machines, small_config):
    outcome = optimize_queue(machines, jobs, small_config, random.Random(1))

    assert sorted(g.job_id for g in outcome.best.genes) == sorted(j.id for j in jobs)
    positions = defaultdict(list)
    for gene in outcome.best.genes:
        positions[gene.machine_id].append(gene.position)
    for values in positions.values():
        assert sorted(values) == list(range(1, len(values) + 1))


def test_sub_scores_within_unit_interval(jobs, machines, small_config):
    fitness = optimize_queue(machines, jobs, small_config, random.Random(3)).fitness
    for score in (fitness.wait_time_score, fitness.utilization_score, fitness.priority_score):
        assert -1e-9 <= score <= 1 + 1e-9


def test_zero_generations_returns_best_of_initial_population():
    machines = [MachineRef(id="A"), MachineRef(id="B")]
    jobs = [
        Job(id="p1", priority=3, estimated_duration_min=10),
        Job(id="p2", priority=3, estimated_duration_min=10),
        Job(id="p3", priority=1, estimated_duration_min=10),
        Job(id="p4", priority=1, estimated_duration_min=10),
    ]
    config = GAConfig(population_size=8, generations=0)

    outcome = optimize_queue(machines, jobs, config, random.Random(21))

    initial = initialize_population(config.population_size, jobs, machines, random.Random(21))
    best_initial = max(
        (evaluate_chromosome(c, machines, jobs, config.weights).total for c in initial),
    )
    assert outcome.generations == 0
    assert outcome.fitness.total == pytest.approx(best_initial)
    assert outcome.best_history == [pytest.approx(best_initial)]


def test_no_jobs_returns_zero_result(machines, small_config):
    outcome = optimize_queue(machines, [], small_config, random.Random(0))

    assert outcome.best.genes == []
    assert outcome.generations == 0
    assert outcome.fitness.total == 0
    assert outcome.fitness.wait_time_score == 0
    assert outcome.fitness.utilization_score == 0
    assert outcome.fitness.priority_score == 0


def test_no_machines_returns_zero_result(jobs, small_config):
    outcome = optimize_queue([], jobs, small_config, random.Random(0))

    assert outcome.best.genes == []
    assert outcome.generations == 0


def test_single_machine_has_perfect_utilization(small_config):
    machines = [MachineRef(id="solo")]
    jobs = [Job(id=f"j{i}", priority=2, estimated_duration_min=4) for i in range(5)]

    outcome = optimize_queue(machines, jobs, small_config, random.Random(8))

    assert outcome.fitness.utilization_score == 1.0


def test_odd_population_is_filled_without_overshoot(jobs, machines):
    config = GAConfig(population_size=7, generations=3, elitism_count=2)
    outcome = optimize_queue(machines, jobs, config, random.Random(13))
    assert outcome.generations == 3
    assert len(outcome.best.genes) == len(jobs)


def _record_generations(monkeypatch):
    """Capture (genes, total) for every population the driver scores."""
    generations = []
    original = optimizer_module._evaluate_all

    def recording(population, machines, jobs, config):
        evaluated = original(population, machines, jobs, config)
        generations.append([(_gene_tuple(c), fit.total) for c, fit in evaluated])
        return evaluated

    monkeypatch.setattr(optimizer_module, "_evaluate_all", recording)
    return generations


def _gene_tuple(chromosome):
    return tuple((g.job_id, g.machine_id, g.position) for g in chromosome.genes)


def test_elites_carried_unchanged_into_next_generation(jobs, machines, monkeypatch):
    generations = _record_generations(monkeypatch)
    config = GAConfig(
        population_size=6,
        generations=30,
        elitism_count=2,
        crossover_rate=1.0,
        mutation_rate=1.0,
    )

    optimize_queue(machines, jobs, config, random.Random(5))

    assert len(generations) == config.generations + 1
    for previous, current in zip(generations, generations[1:]):
        ranked = sorted(previous, key=lambda row: row[1], reverse=True)
        current_genes = [genes for genes, _ in current]
        for genes, total in ranked[: config.elitism_count]:
            assert genes in current_genes
        assert max(total for _, total in current) >= ranked[0][1]


def test_generation_best_never_drops_with_single_elite(jobs, machines, monkeypatch):
    generations = _record_generations(monkeypatch)
    config = GAConfig(population_size=4, generations=40, elitism_count=1, mutation_rate=1.0)

    optimize_queue(machines, jobs, config, random.Random(17))

    bests = [max(total for _, total in population) for population in generations]
    assert all(b >= a for a, b in zip(bests, bests[1:]))
