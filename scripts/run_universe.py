#!/usr/bin/env python3
"""
Headless runner for the probabilistic universe.

Usage:
  python scripts/run_universe.py
  python scripts/run_universe.py --preset chaos --ticks 2000 --every 200
  python scripts/run_universe.py --data-root data --no-learning

Loads the data pack, spawns a preset, runs the tick loop and prints a tick
summary every N ticks, then the final posterior and discovered equations.
"""

import argparse
import json
from pathlib import Path

from probverse.simulation import UniverseSimulation
from probverse.logger_setup import setup_logging
from probverse.constants import TICK_SUMMARY_INTERVAL

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def main() -> int:
    ap = argparse.ArgumentParser(
        description="Run the probabilistic universe headless and report what the particles learned."
    )
    ap.add_argument("--data-root", default=str(_PROJECT_ROOT / "data"), help="Data pack directory")
    ap.add_argument("--schema-dir", default=str(_PROJECT_ROOT / "schemas"), help="JSON schema directory")
    ap.add_argument("--preset", default="demo-learn-gravity", help="Preset id to spawn")
    ap.add_argument("--ticks", type=int, default=1000, help="Number of ticks to run")
    ap.add_argument("--every", type=int, default=TICK_SUMMARY_INTERVAL, help="Tick summary interval")
    ap.add_argument("--no-learning", action="store_true", help="Skip estimator correction steps")
    ap.add_argument("--snapshot", default=None, help="Write final JSON snapshot to this path")
    args = ap.parse_args()

    sim = UniverseSimulation.from_data_pack(Path(args.data_root), Path(args.schema_dir))
    logger = setup_logging(sim.config.logging, run_id=sim.config.universe_id)

    sim.spawn_preset(args.preset)
    learning = False if args.no_learning else None

    for _ in range(args.ticks):
        sim.tick(learning)
        if args.every > 0 and sim.tick_count % args.every == 0:
            sim.print_tick_summary()

    posterior = sim.get_global_posterior()
    print()
    print("Global posterior")
    for name, constant in posterior.constants().items():
        print(f"  {name:9s} mean={constant.mean:8.4f}  var={constant.variance:.5f}  "
              f"entropy={constant.entropy:8.4f}")
    print(f"  consensus={posterior.consensus_strength:.4f}  "
          f"information_gain={posterior.information_gain:.4f}  "
          f"mutual_information={sim.get_mutual_information():.4f}")

    metrics = sim.get_convergence_metrics()
    print(f"  converged={metrics.converged}  rate={metrics.convergence_rate:.4f}  "
          f"stability={metrics.stability:.4f}")

    print()
    print("Discovered equations")
    for name, equation in sim.get_discovered_equations().items():
        if equation is None:
            print(f"  {name:9s} (insufficient data)")
            continue
        params = ", ".join(f"{p.name}={p.value:.4f}" for p in equation.parameters)
        print(f"  {name:9s} {equation.form:22s} {params}  R²={equation.r_squared:.4f}")

    telemetry = sim.get_telemetry()
    if telemetry['singular_fallbacks']:
        logger.warning(f"{telemetry['singular_fallbacks']} near-singular innovation covariances during run")

    if args.snapshot:
        with open(args.snapshot, "w", encoding="utf-8") as f:
            json.dump(sim.get_snapshot(), f, indent=2)
        logger.info(f"Snapshot written to {args.snapshot}")

    return 0


if __name__ == '__main__':
    raise SystemExit(main())
