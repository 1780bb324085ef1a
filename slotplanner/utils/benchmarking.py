import time
from dataclasses import dataclass
from typing import Optional, Sequence

from slotplanner.engine.assigner import assign
from slotplanner.engine.optimality import max_matching_size
from slotplanner.models.entities import Participant, Project


@dataclass
class BenchmarkResult:
    greedy_assigned: int
    optimal_assigned: Optional[int]
    gap: Optional[int]
    greedy_time_seconds: float
    optimal_time_seconds: float
    num_participants: int


def benchmark_assignment(
    project: Project,
    participants: Sequence[Participant],
    time_limit_seconds: int = 10,
) -> BenchmarkResult:
    """
    Compare the greedy engine against the CP-SAT maximum matching.
    A positive gap counts forms the greedy pass left out that some
    rearrangement could have placed.
    """
    start = time.time()
    greedy = assign(project, participants)
    greedy_time = time.time() - start

    start = time.time()
    optimum = max_matching_size(project, participants, time_limit_seconds)
    optimal_time = time.time() - start

    greedy_assigned = len(greedy.assignments)
    return BenchmarkResult(
        greedy_assigned=greedy_assigned,
        optimal_assigned=optimum,
        gap=None if optimum is None else optimum - greedy_assigned,
        greedy_time_seconds=greedy_time,
        optimal_time_seconds=optimal_time,
        num_participants=len(participants),
    )
