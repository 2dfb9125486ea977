from __future__ import annotations

"""
File: services/queue-optimizer-py/queue_optimizer/ga/chromosome.py
Purpose: Chromosome representation for queue assignments.
Key responsibilities:
- Gene = (job, machine, 1-based queue position).
- Dense per-machine position renumbering after structural changes.
"""

from dataclasses import dataclass, field, replace
from typing import Iterable


@dataclass(frozen=True)
class Gene:
    job_id: str
    machine_id: str
    position: int


@dataclass
class Chromosome:
    """Ordered genes (one per job) plus the fitness cached at last evaluation."""
    genes: list[Gene] = field(default_factory=list)
    fitness: float = 0.0

    def copy(self) -> "Chromosome":
        return Chromosome(genes=list(self.genes), fitness=self.fitness)


def renumber_positions(genes: Iterable[Gene]) -> list[Gene]:
    """Reassign positions 1..k per machine following the current gene order."""
    counters: dict[str, int] = {}
    renumbered: list[Gene] = []
    for gene in genes:
        counters[gene.machine_id] = counters.get(gene.machine_id, 0) + 1
        position = counters[gene.machine_id]
        if gene.position != position:
            gene = replace(gene, position=position)
        renumbered.append(gene)
    return renumbered
