"""Statistics over many searches.

Runs the route finder repeatedly with derived seeds and summarizes how hard
the search was (attempts per success) and how the placements came out
(sphere depth, which slots tend to hold progression items).
"""

from __future__ import annotations

import random
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field

from seedroute.errors import SearchExhaustedError
from seedroute.route import Instance, RouteResult, find_routes


@dataclass
class RunStats:
    """Aggregated results of several searches.

    Attributes:
        trials: Number of searches run.
        attempts: Attempts used by each successful search.
        sphere_counts: Number of spheres of each successful search.
        failures: Searches that exhausted their retry budget.
        progression_slots: (instance, slot) -> times it held a progression item.
    """

    trials: int = 0
    attempts: list[int] = field(default_factory=list)
    sphere_counts: list[int] = field(default_factory=list)
    failures: int = 0
    progression_slots: Counter[tuple[int, str]] = field(default_factory=Counter)

    @property
    def successes(self) -> int:
        return len(self.attempts)

    @property
    def avg_attempts(self) -> float:
        return sum(self.attempts) / len(self.attempts) if self.attempts else 0.0

    @property
    def avg_spheres(self) -> float:
        if not self.sphere_counts:
            return 0.0
        return sum(self.sphere_counts) / len(self.sphere_counts)

    def record(self, result: RouteResult) -> None:
        """Add one successful search."""
        self.trials += 1
        self.attempts.append(result.attempts)
        spheres = result.validation.spheres
        self.sphere_counts.append(len(spheres.spheres) if spheres else 0)
        for route in result.routes:
            for slot, item in route.checks().items():
                if result.routes[item.instance].graph.is_progression(item.name):
                    self.progression_slots[(route.instance, slot)] += 1


def collect_stats(
    instances: Sequence[Instance],
    trials: int,
    seed: int,
    max_attempts: int = 100,
    workers: int = 1,
) -> RunStats:
    """Run `trials` searches with seeds derived from `seed`.

    Searches that exhaust their budget are counted, not raised.
    """
    stats = RunStats()
    rng = random.Random(seed)
    for _ in range(trials):
        trial_seed = rng.getrandbits(32)
        try:
            result = find_routes(
                instances, trial_seed, max_attempts, workers=workers, log=None
            )
        except SearchExhaustedError:
            stats.trials += 1
            stats.failures += 1
            continue
        stats.record(result)
    return stats


def report_stats(stats: RunStats, top: int = 10) -> str:
    """Generate a human-readable statistics report.

    Args:
        stats: Collected statistics
        top: Number of most frequent progression slots to list

    Returns:
        Multi-line string report
    """
    lines: list[str] = []

    lines.append("=" * 50)
    lines.append("Search Statistics Report")
    lines.append("=" * 50)
    lines.append("")

    lines.append("Searches:")
    lines.append(f"  Trials: {stats.trials}")
    lines.append(f"  Successes: {stats.successes}")
    lines.append(f"  Failures: {stats.failures}")
    if stats.attempts:
        lines.append(f"  Min attempts: {min(stats.attempts)}")
        lines.append(f"  Max attempts: {max(stats.attempts)}")
        lines.append(f"  Avg attempts: {stats.avg_attempts:.1f}")
    lines.append("")

    if stats.sphere_counts:
        lines.append("Spheres:")
        lines.append(f"  Min: {min(stats.sphere_counts)}")
        lines.append(f"  Max: {max(stats.sphere_counts)}")
        lines.append(f"  Avg: {stats.avg_spheres:.1f}")
        lines.append("")

    if stats.progression_slots:
        multi = len({instance for instance, _ in stats.progression_slots}) > 1
        lines.append(f"Top Progression Slots ({stats.successes} routes):")
        ranked = sorted(stats.progression_slots.items(), key=lambda kv: (-kv[1], kv[0]))
        for (instance, slot), count in ranked[:top]:
            label = f"[{instance}] {slot}" if multi else slot
            lines.append(f"  {count:4d}  {label}")
        lines.append("")

    return "\n".join(lines)
