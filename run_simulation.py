#!/usr/bin/env python3
import argparse
import json
import sys

from config import DEFAULT_REPLICAS, DEFAULT_SEED, PRESETS, load_scenario, scenario_from_dict
from display_results import display_comparative_analysis, display_replica_summary, display_results
from errors import SimulationError
from metrics import aggregate_replicas, summarize
from policies import POLICIES
from scenarios import compare_policies, run_replicas, run_scenario


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Edge/fog/cloud offloading simulation")
    parser.add_argument("--scenario", choices=sorted(PRESETS), default="parking",
                        help="built-in deployment to simulate")
    parser.add_argument("--config", help="JSON scenario file (overrides --scenario)")
    parser.add_argument("--policy", choices=sorted(POLICIES), help="offloading policy for the dispatcher")
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED, help="seed for the random policy")
    parser.add_argument("--replicas", type=int,
                        help=f"number of independent runs (default 1, or {DEFAULT_REPLICAS} with --compare)")
    parser.add_argument("--compare", action="store_true",
                        help="compare the random and least-load policies over the replicas")
    parser.add_argument("--until", type=float, help="stop at this virtual time")
    parser.add_argument("--verbose", action="store_true", help="print every simulation step")
    args = parser.parse_args(argv)
    if args.replicas is not None and args.replicas < 1:
        parser.error("--replicas must be at least 1")
    return args


def main(argv=None):
    args = parse_args(argv)

    try:
        if args.config:
            print(f"Loading scenario from {args.config}...")
            scenario = load_scenario(args.config)
        else:
            scenario = scenario_from_dict({"preset": args.scenario})
        if args.policy:
            scenario['dispatcher']['policy'] = args.policy
            scenario = scenario_from_dict(scenario)

        print(f"Starting {scenario['name']} Simulation...")

        if args.compare:
            replicas = args.replicas or DEFAULT_REPLICAS
            seeds = range(args.seed, args.seed + replicas)
            results = compare_policies(scenario, ["random", "least_load"], seeds, until=args.until)
            display_comparative_analysis(results)
        elif args.replicas and args.replicas > 1:
            seeds = range(args.seed, args.seed + args.replicas)
            snapshots = run_replicas(scenario, seeds, until=args.until)
            display_replica_summary(aggregate_replicas([summarize(s) for s in snapshots]),
                                    title=f"{scenario['name']} over {args.replicas} replicas")
        else:
            simulation = run_scenario(scenario, seed=args.seed, verbose=args.verbose, until=args.until)
            print(f"{scenario['name']} Simulation Completed at t={simulation.engine.now:.2f} "
                  f"({simulation.engine.events_processed} events).")
            display_results(simulation.snapshot(), title=scenario['name'])

    except FileNotFoundError as e:
        print(f"File not found error: {e}")
        return 1
    except json.JSONDecodeError as e:
        print(f"JSON decode error: {e}")
        return 1
    except SimulationError as e:
        print(f"Simulation terminated due to an error: {type(e).__name__}: {e}")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
