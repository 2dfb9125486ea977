import random

import pytest

from queue_optimizer.orchestrator import InvalidConfigurationError, resolve_config, run_optimization
from queue_optimizer.schemas import GAConfig, GAConfigOverride, GAWeightsOverride, MachineRef, priority_ordinal


def test_priority_labels_map_to_ordinals():
    assert priority_ordinal("HIGH") == 3
    assert priority_ordinal("MEDIUM") == 2
    assert priority_ordinal("LOW") == 1
    assert priority_ordinal("urgent") == 1
    assert priority_ordinal(None) == 1


def test_defaults_used_when_nothing_stored():
    config = resolve_config()
    assert config.population_size == 50
    assert config.generations == 100
    assert config.crossover_rate == pytest.approx(0.8)
    assert config.mutation_rate == pytest.approx(0.15)
    assert config.elitism_count == 2
    assert config.tournament_size == 3
    assert (config.weights.wait_time, config.weights.utilization, config.weights.priority) == (0.4, 0.3, 0.3)


def test_active_configuration_wins_over_defaults():
    active = GAConfig(population_size=20, generations=5)
    assert resolve_config(active=active).population_size == 20


def test_override_is_layered_on_defaults():
    override = GAConfigOverride(generations=7, weights=GAWeightsOverride(priority=1.0))
    config = resolve_config(override, active=GAConfig(population_size=20))

    assert config.generations == 7
    assert config.population_size == 50
    assert config.weights.priority == 1.0
    assert config.weights.wait_time == pytest.approx(0.4)


@pytest.mark.parametrize(
    "override",
    [
        GAConfigOverride(mutation_rate=-0.1),
        GAConfigOverride(crossover_rate=1.5),
        GAConfigOverride(population_size=4, elitism_count=5),
        GAConfigOverride(weights=GAWeightsOverride(utilization=-1)),
        GAConfigOverride(generations=10_000_000),
    ],
)
def test_invalid_configuration_rejected_at_boundary(override):
    with pytest.raises(InvalidConfigurationError):
        resolve_config(override)


def test_run_commits_every_assignment(jobs, machines, make_provider, make_sink):
    provider = make_provider(machines, jobs, GAConfig(population_size=10, generations=5))
    sink = make_sink()

    result = run_optimization("VMM", provider, sink, rng=random.Random(4))

    assert result.machine_type == "VMM"
    assert result.generations == 5
    assert result.failed_commits == []
    assert sorted(a.job_id for a in result.assignments) == sorted(j.id for j in jobs)
    assert all(a.committed for a in result.assignments)
    assert sorted(c[0] for c in sink.commits) == sorted(j.id for j in jobs)
    assert result.execution_time_ms >= 0


def test_wait_estimates_reported_side_by_side(jobs, machines, make_provider, make_sink):
    provider = make_provider(machines, jobs, GAConfig(population_size=6, generations=2))

    result = run_optimization("CMM", provider, make_sink(), rng=random.Random(6), cycle_time_min=15)

    for assignment in result.assignments:
        assert assignment.estimated_wait_time_min == assignment.position * 15
        assert assignment.simulated_wait_time_min >= 0
    firsts = [a for a in result.assignments if a.position == 1]
    assert all(a.simulated_wait_time_min == 0 for a in firsts)
    assert result.wait_time_divergence_min == max(
        abs(a.estimated_wait_time_min - a.simulated_wait_time_min) for a in result.assignments
    )


def test_sink_failures_do_not_abort_batch(jobs, machines, make_provider, make_sink):
    provider = make_provider(machines, jobs, GAConfig(population_size=6, generations=2))
    sink = make_sink(reject={"job-1"}, explode={"job-2"})

    result = run_optimization("VMM", provider, sink, rng=random.Random(2))

    assert sorted(result.failed_commits) == ["job-1", "job-2"]
    assert len(sink.commits) == len(jobs) - 1
    committed = {a.job_id: a.committed for a in result.assignments}
    assert committed["job-1"] is False
    assert committed["job-2"] is False
    assert committed["job-3"] is True


def test_inactive_machines_are_filtered(jobs, make_provider, make_sink):
    machines = [MachineRef(id="up"), MachineRef(id="down", status="MAINTENANCE")]
    provider = make_provider(machines, jobs, GAConfig(population_size=6, generations=3))

    result = run_optimization("VMM", provider, make_sink(), rng=random.Random(1))

    assert {a.machine_id for a in result.assignments} == {"up"}


def test_no_pending_jobs_gives_empty_result(machines, make_provider, make_sink):
    sink = make_sink()
    result = run_optimization("VMM", make_provider(machines, []), sink)

    assert result.assignments == []
    assert result.generations == 0
    assert result.fitness.total == 0
    assert sink.commits == []


def test_override_skips_stored_configuration(jobs, machines, make_provider, make_sink):
    provider = make_provider(machines, jobs, GAConfig(population_size=10, generations=50))

    result = run_optimization(
        "VMM",
        provider,
        make_sink(),
        config_override=GAConfigOverride(population_size=6, generations=1),
        rng=random.Random(0),
    )

    assert result.generations == 1
    assert provider.config_loads == 0


def test_unknown_machine_type_rejected(jobs, machines, make_provider, make_sink):
    with pytest.raises(ValueError):
        run_optimization("XRAY", make_provider(machines, jobs), make_sink())


def test_seeded_runs_are_reproducible(jobs, machines, make_provider, make_sink):
    provider = make_provider(machines, jobs, GAConfig(population_size=10, generations=8))

    first = run_optimization("VMM", provider, make_sink(), rng=random.Random(99))
    second = run_optimization("VMM", provider, make_sink(), rng=random.Random(99))

    assert [a.model_dump() for a in first.assignments] == [a.model_dump() for a in second.assignments]
    assert first.fitness == second.fitness
