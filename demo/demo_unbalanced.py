#!/usr/bin/env python3
"""
Demo: Unbalanced Distributions

Distributions that admit no perfect partition:
1. More processes than colors
2. Token totals not divisible by the process count
3. A process that starts empty

The oracle switches to its share thresholds and the stagnation check
guarantees the run ends. For each case the demo reports how close the outcome
came to the best distinct-color assignment.
"""

import logging
from pathlib import Path

import matplotlib.pyplot as plt

from tokensim.analysis import assignment_gap, optimal_color_assignment
from tokensim.core import Simulation
from tokensim.log import configure_logging
from tokensim.viz import plot_color_distribution, save_figure


CASES = {
    "two colors, three processes": {
        1: ["R", "R", "R", "G"],
        2: ["G"],
        3: ["R", "G"],
    },
    "three colors, uneven totals": {
        1: ["R", "R", "G", "B"],
        2: ["G", "G", "R", "G"],
        3: ["B", "B", "R", "G"],
    },
    "one empty process": {
        1: [],
        2: ["R", "R"],
        3: ["R", "G"],
    },
}


def main():
    configure_logging(logging.WARNING)

    print("=" * 60)
    print("  UNBALANCED DISTRIBUTIONS")
    print("=" * 60)

    fig, axes = plt.subplots(1, len(CASES), figsize=(5 * len(CASES), 4))

    for ax, (name, distribution) in zip(axes, CASES.items()):
        sim = Simulation(distribution)
        summary = sim.start()
        final = sim.get_state()
        result = optimal_color_assignment(final, sim.palette)

        print(f"\n{name}:")
        print(f"   Feasible: {summary.feasible}")
        print(f"   Phase: {summary.phase.value}"
              + (f" ({summary.forced.value})" if summary.forced else ""))
        print(f"   Iterations: {summary.iterations}, exchanges: {summary.total_exchanges}")
        for process in final.processes:
            print(f"   Process {process.id}: {''.join(process.stack) or '-'}")
        print(f"   Φ: {summary.potential}, misplaced vs optimal: {result.misplaced_tokens}"
              f" (gap {assignment_gap(final, sim.palette)})")

        plot_color_distribution(final, sim.palette, title=name, ax=ax)

    fig.tight_layout()
    output_dir = Path("output/demo_unbalanced")
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / "final_distributions.png"
    save_figure(fig, output_path)
    plt.close(fig)
    print(f"\n   Saved: {output_path}")


if __name__ == "__main__":
    main()
