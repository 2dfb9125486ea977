import pytest

from queue_optimizer.schemas import GAConfig, Job, MachineRef


class FakeProvider:
    def __init__(self, machines, jobs, config=None):
        self.machines = machines
        self.jobs = jobs
        self.config = config
        self.config_loads = 0

    def list_eligible_machines(self, machine_type):
        return list(self.machines)

    def list_pending_jobs(self, machine_type):
        return list(self.jobs)

    def count_pending_jobs(self, machine_type):
        return len(self.jobs)

    def load_active_configuration(self):
        self.config_loads += 1
        return self.config


class FakeSink:
    def __init__(self, reject=(), explode=()):
        self.reject = set(reject)
        self.explode = set(explode)
        self.commits = []

    def commit_assignment(self, job_id, machine_id, position):
        if job_id in self.explode:
            raise RuntimeError("connection lost")
        self.commits.append((job_id, machine_id, position))
        return job_id not in self.reject


@pytest.fixture
def machines():
    return [MachineRef(id="vmm-1"), MachineRef(id="vmm-2"), MachineRef(id="vmm-3")]


@pytest.fixture
def jobs():
    return [
        Job(id=f"job-{idx}", priority=(idx % 3) + 1, estimated_duration_min=5 + idx * 2)
        for idx in range(12)
    ]


@pytest.fixture
def small_config():
    return GAConfig(population_size=16, generations=10, elitism_count=2, tournament_size=3)


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def make_sink():
    return FakeSink
