#!/usr/bin/env python3
"""
Run the ecosystem headless

Usage:
    python run_simulation.py --ticks 5000 --preset fast_evolution --seed 7
    python run_simulation.py --resume ecosim_saves/autosave.ecosim --ticks 1000
"""

import argparse
import logging

from ecosim import EcosystemTuning, Simulation, load_simulation, load_tuning
from ecosim.persistence import SimulationPersistence

logger = logging.getLogger("ecosim")


def main():
    parser = argparse.ArgumentParser(description="Evolving ecosystem simulation")
    parser.add_argument("--ticks", type=int, default=1000)
    parser.add_argument("--dt", type=float, default=1.0 / 60.0)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--preset", default="balanced",
                        choices=["balanced", "fast_evolution", "stable", "competitive"])
    parser.add_argument("--tuning", help="JSON file of tuning overrides")
    parser.add_argument("--resume", help="checkpoint to continue from")
    parser.add_argument("--save-dir", default=None, help="write periodic checkpoints here")
    parser.add_argument("--save-interval", type=int, default=5000)
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.resume:
        sim = load_simulation(args.resume)
        if sim is None:
            raise SystemExit(1)
    else:
        if args.tuning:
            tuning = load_tuning(args.tuning, preset=args.preset)
        else:
            tuning = EcosystemTuning.preset(args.preset)
        sim = Simulation(tuning, seed=args.seed)

    callback = None
    checkpoints = None
    if args.save_dir:
        checkpoints = SimulationPersistence(args.save_dir, interval=args.save_interval)
        callback = checkpoints.maybe_save

    sim.run(args.ticks, args.dt, callback=callback)

    if checkpoints is not None:
        checkpoints.save(sim, name="final")
    logger.info("Finished: %s", sim.get_stats())


if __name__ == '__main__':
    main()
