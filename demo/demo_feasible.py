#!/usr/bin/env python3
"""
Demo: Feasible Redistribution

Three processes, three colors, ten tokens of each color:
1. Start from a thoroughly mixed distribution
2. Run the protocol until every process is done
3. Show the final stacks and the Φ trace
4. Compare the outcome with the optimal distinct-color assignment

A perfect partition exists, so every process should end up monochrome in a
color of its own.
"""

import logging
from pathlib import Path

import matplotlib.pyplot as plt

from tokensim.analysis import optimal_color_assignment, summarize_history
from tokensim.core import Simulation, SimulationConfig
from tokensim.log import LoggingObserver, configure_logging
from tokensim.viz import plot_run_summary, save_figure


def main():
    configure_logging(logging.INFO)

    print("=" * 60)
    print("  FEASIBLE REDISTRIBUTION")
    print("=" * 60)

    distribution = {
        1: ["R", "R", "R", "R", "G", "G", "G", "B", "B", "B"],
        2: ["G", "G", "G", "G", "R", "R", "R", "B", "B", "B"],
        3: ["B", "B", "B", "B", "R", "R", "R", "G", "G", "G"],
    }
    config = SimulationConfig(palette=("R", "G", "B"))

    print(f"\n1. Setup:")
    for pid, stack in distribution.items():
        print(f"   Process {pid}: {''.join(stack)}")

    sim = Simulation(distribution, config)
    sim.events.subscribe(LoggingObserver())

    print(f"\n   Initial Φ: {sim.get_potential()}")

    print("\n2. Running...")
    summary = sim.start()
    print(f"   Phase: {summary.phase.value}")
    print(f"   Iterations: {summary.iterations}")
    print(f"   Exchanges: {summary.total_exchanges}")
    print(f"   Final Φ: {summary.potential}")

    print("\n3. Final stacks:")
    final = sim.get_state()
    for process in final.processes:
        print(f"   Process {process.id}: {''.join(process.stack)}  (done={process.done})")

    history = sim.get_history()
    trace = summarize_history(history, sim.palette)
    result = optimal_color_assignment(final, sim.palette)
    print(f"\n4. Analysis:")
    print(f"   Snapshots recorded: {trace.steps}")
    print(f"   Φ dropped by: {trace.potential_drop}")
    print(f"   Tokens conserved: {trace.conserved}")
    print(f"   Optimal assignment: {result.assignment}")
    print(f"   Efficiency: {result.efficiency:.2%}")

    fig = plot_run_summary(history, sim.palette)
    output_dir = Path("output/demo_feasible")
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / "run_summary.png"
    save_figure(fig, output_path)
    plt.close(fig)
    print(f"\n   Saved: {output_path}")

    print("\n" + "=" * 60)
    print("  SUMMARY")
    print("=" * 60)
    print(f"  Converged without forcing: {summary.converged}")


if __name__ == "__main__":
    main()
