"""
File: services/queue-optimizer-py/queue_optimizer/settings.py
Purpose: Environment-backed configuration for the queue optimizer service.
Key responsibilities:
- Parse GA defaults, runtime caps and service settings.
- Parse MySQL/RabbitMQ connection settings.
"""

from dataclasses import dataclass
import os


def _int_env(name: str, default: int = 0) -> int:
    """Parse an integer env var with a fallback."""
    raw = os.getenv(name, "")
    if raw == "":
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    """Optimizer configuration parsed from environment."""
    host: str = os.getenv("OPTIMIZER_HOST", "0.0.0.0")
    port: int = _int_env("OPTIMIZER_PORT", 8003)
    default_cycle_time_min: float = float(os.getenv("DEFAULT_CYCLE_TIME_MIN", "15"))
    default_job_duration_min: float = float(os.getenv("DEFAULT_JOB_DURATION_MIN", "15"))
    reoptimize_threshold: int = _int_env("REOPTIMIZE_THRESHOLD", 2)
    population_size: int = _int_env("GA_POPULATION_SIZE", 50)
    generations: int = _int_env("GA_GENERATIONS", 100)
    crossover_rate: float = float(os.getenv("GA_CROSSOVER_RATE", "0.8"))
    mutation_rate: float = float(os.getenv("GA_MUTATION_RATE", "0.15"))
    elitism_count: int = _int_env("GA_ELITISM_COUNT", 2)
    tournament_size: int = _int_env("GA_TOURNAMENT_SIZE", 3)
    wait_time_weight: float = float(os.getenv("GA_WAIT_TIME_WEIGHT", "0.4"))
    utilization_weight: float = float(os.getenv("GA_UTILIZATION_WEIGHT", "0.3"))
    priority_weight: float = float(os.getenv("GA_PRIORITY_WEIGHT", "0.3"))
    max_population_size: int = _int_env("GA_MAX_POPULATION_SIZE", 500)
    max_generations: int = _int_env("GA_MAX_GENERATIONS", 1000)
    mysql_host: str = os.getenv("MYSQL_HOST", "mysql")
    mysql_port: int = _int_env("MYSQL_PORT", 3306)
    mysql_user: str = os.getenv("MYSQL_USER", "inspection")
    mysql_password: str = os.getenv("MYSQL_PASSWORD", "inspectionpass")
    mysql_db: str = os.getenv("MYSQL_DB", "inspection_queue")
    rabbit_host: str = os.getenv("RABBITMQ_HOST", "rabbitmq")
    rabbit_port: int = _int_env("RABBITMQ_PORT", 5672)
    rabbit_user: str = os.getenv("RABBITMQ_USER", "inspection")
    rabbit_pass: str = os.getenv("RABBITMQ_PASS", "inspectionpass")
    exchange_name: str = "inspection.events"


settings = Settings()


def rabbit_url() -> str:
    return f"amqp://{settings.rabbit_user}:{settings.rabbit_pass}@{settings.rabbit_host}:{settings.rabbit_port}/"
