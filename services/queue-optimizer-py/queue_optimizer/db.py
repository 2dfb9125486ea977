from __future__ import annotations

"""
File: services/queue-optimizer-py/queue_optimizer/db.py
Purpose: MySQL data provider and assignment sink for the optimizer.
Key responsibilities:
- Read ACTIVE machines and WAITING queue items per machine type.
- Read the active GA configuration row.
- Write machine/position per queue item (one UPDATE per assignment, no transaction).
"""

from contextlib import contextmanager
from typing import Any, Optional

import pymysql
from pydantic import ValidationError
from pymysql.constants import CLIENT

from queue_optimizer.orchestrator import InvalidConfigurationError
from queue_optimizer.schemas import GAConfig, Job, MachineRef, priority_ordinal
from queue_optimizer.settings import settings


def _connect():
    """Open a new MySQL connection with dict cursor."""
    return pymysql.connect(
        host=settings.mysql_host,
        port=settings.mysql_port,
        user=settings.mysql_user,
        password=settings.mysql_password,
        database=settings.mysql_db,
        autocommit=True,
        cursorclass=pymysql.cursors.DictCursor,
        client_flag=CLIENT.FOUND_ROWS,
    )


@contextmanager
def db_cursor():
    """Context manager for a short-lived DB cursor."""
    conn = _connect()
    try:
        with conn.cursor() as cur:
            yield cur
    finally:
        conn.close()


def _value(row: dict[str, Any], key: str, fallback: Any) -> Any:
    value = row.get(key)
    return fallback if value is None else value


def machine_from_row(row: dict[str, Any]) -> MachineRef:
    """Convert a machines row into a MachineRef."""
    return MachineRef(
        id=str(row["id"]),
        cycle_time_min=float(_value(row, "cycle_time_min", settings.default_cycle_time_min)),
        status=str(row["status"]),
    )


def job_from_row(row: dict[str, Any]) -> Job:
    """Convert an inspection_queue row into a Job; missing estimates use the default duration."""
    return Job(
        id=str(row["id"]),
        priority=priority_ordinal(row.get("priority")),
        estimated_duration_min=float(row.get("estimated_time") or settings.default_job_duration_min),
    )


def config_from_row(row: dict[str, Any]) -> GAConfig:
    """Convert a ga_configurations row; NULL columns fall back to defaults."""
    defaults = GAConfig()
    try:
        return _config_from_row(row, defaults)
    except ValidationError as exc:
        raise InvalidConfigurationError(f"stored ga configuration id={row.get('id')} is invalid: {exc}") from exc


def _config_from_row(row: dict[str, Any], defaults: GAConfig) -> GAConfig:
    return GAConfig(
        population_size=int(_value(row, "population_size", defaults.population_size)),
        generations=int(_value(row, "generations", defaults.generations)),
        crossover_rate=float(_value(row, "crossover_rate", defaults.crossover_rate)),
        mutation_rate=float(_value(row, "mutation_rate", defaults.mutation_rate)),
        elitism_count=int(_value(row, "elitism_count", defaults.elitism_count)),
        tournament_size=int(_value(row, "tournament_size", defaults.tournament_size)),
        weights={
            "wait_time": float(_value(row, "wait_time_weight", defaults.weights.wait_time)),
            "utilization": float(_value(row, "utilization_weight", defaults.weights.utilization)),
            "priority": float(_value(row, "priority_weight", defaults.weights.priority)),
        },
    )


class MySQLDataProvider:
    """Fetches fresh optimizer inputs for each run."""

    def list_eligible_machines(self, machine_type: str) -> list[MachineRef]:
        with db_cursor() as cur:
            cur.execute(
                "SELECT id, cycle_time_min, status FROM machines WHERE type=%s AND status='ACTIVE' ORDER BY id",
                (machine_type,),
            )
            rows = cur.fetchall()
        return [machine_from_row(row) for row in rows]

    def list_pending_jobs(self, machine_type: str) -> list[Job]:
        with db_cursor() as cur:
            cur.execute(
                """
                SELECT q.id, q.priority, q.estimated_time
                FROM inspection_queue q
                JOIN machines m ON m.id = q.machine_id
                WHERE m.type=%s AND q.status='WAITING'
                ORDER BY q.position, q.id
                """,
                (machine_type,),
            )
            rows = cur.fetchall()
        return [job_from_row(row) for row in rows]

    def count_pending_jobs(self, machine_type: str) -> int:
        with db_cursor() as cur:
            cur.execute(
                """
                SELECT COUNT(*) AS pending
                FROM inspection_queue q
                JOIN machines m ON m.id = q.machine_id
                WHERE m.type=%s AND q.status='WAITING'
                """,
                (machine_type,),
            )
            row = cur.fetchone()
        return int(row["pending"]) if row else 0

    def load_active_configuration(self) -> Optional[GAConfig]:
        with db_cursor() as cur:
            cur.execute("SELECT * FROM ga_configurations WHERE is_active=1 ORDER BY id DESC LIMIT 1")
            row = cur.fetchone()
        if not row:
            return None
        return config_from_row(row)


class MySQLAssignmentSink:
    """Writes queue placements back, one independent UPDATE per item."""

    def commit_assignment(self, job_id: str, machine_id: str, position: int) -> bool:
        with db_cursor() as cur:
            cur.execute(
                "UPDATE inspection_queue SET machine_id=%s, position=%s WHERE id=%s",
                (machine_id, int(position), job_id),
            )
            return cur.rowcount == 1
