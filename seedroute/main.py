"""seedroute CLI entry point."""

from __future__ import annotations

import argparse
import random
import sys
from pathlib import Path

from seedroute.config import (
    Config,
    InstanceConfig,
    LogicOptions,
    load_config,
    opt_string,
    parse_instance_string,
    parse_seed,
)
from seedroute.errors import SeedrouteError
from seedroute.game_data import load_game
from seedroute.output import export_json, export_spoiler_log
from seedroute.plan import load_plan, route_from_plan
from seedroute.route import Instance, RouteResult, find_routes
from seedroute.stats import collect_stats, report_stats


def _seed_arg(text: str) -> int:
    try:
        return parse_seed(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="seedroute - Randomize item placement with guaranteed beatability",
    )
    parser.add_argument(
        "config",
        type=Path,
        nargs="?",
        default=None,
        help="Path to config.toml (optional, uses defaults if not provided)",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output directory (default: config's output_dir or ./output)",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory holding <game>.yaml tables (overrides config)",
    )
    parser.add_argument(
        "--seed",
        type=_seed_arg,
        help="32-bit seed as hex (overrides config, default: random)",
    )
    parser.add_argument(
        "--game",
        help="Game to randomize, full or short name (overrides config)",
    )
    parser.add_argument("--hard", action="store_true", help="Enable hard logic")
    parser.add_argument(
        "--dungeons", action="store_true", help="Shuffle dungeon entrances"
    )
    parser.add_argument(
        "--portals", action="store_true", help="Shuffle subrosia portals"
    )
    parser.add_argument(
        "--treewarp", action="store_true", help="Enable tree warp (patcher only)"
    )
    parser.add_argument(
        "--multi",
        help='Comma-separated instances for multiworld, e.g. "ages+hd,s+p"',
    )
    parser.add_argument(
        "--plan",
        type=Path,
        help="Use a fixed plan file instead of searching",
    )
    parser.add_argument(
        "--race",
        action="store_true",
        help="Hide the seed in output names",
    )
    parser.add_argument(
        "--spoiler",
        action="store_true",
        help="Generate spoiler log file",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help="Max search attempts (default: config or 100)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Threads running attempts (default: config or 1)",
    )
    parser.add_argument(
        "--stats",
        type=int,
        metavar="N",
        default=None,
        help="Run N searches and print statistics instead of writing files",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose output",
    )
    return parser


def _select_instances(args: argparse.Namespace, config: Config) -> list[InstanceConfig]:
    """Instances from --multi, --game or the config, with CLI flags applied."""
    if args.multi:
        instances = [parse_instance_string(part) for part in args.multi.split(",")]
    elif args.game:
        instances = [parse_instance_string(args.game)]
    else:
        instances = config.instances

    for instance in instances:
        options = instance.options
        options.hard = options.hard or args.hard
        options.dungeons = options.dungeons or args.dungeons
        options.portals = options.portals or args.portals
        options.treewarp = options.treewarp or args.treewarp
    return instances


def main() -> int:
    """Main entry point for the seedroute command."""
    args = _build_parser().parse_args()

    # Load or create config
    try:
        if args.config:
            config = load_config(args.config)
            if args.verbose:
                print(f"Loaded config from {args.config}")
        else:
            config = Config()
            if args.verbose:
                print("Using default configuration")
        selected = _select_instances(args, config)
    except FileNotFoundError:
        print(f"Error: Config file not found: {args.config}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    seed = args.seed if args.seed is not None else config.run.seed
    if seed is None:
        seed = random.getrandbits(32)
    race = args.race or config.run.race
    max_attempts = args.max_attempts or config.run.max_attempts
    workers = args.workers or config.run.workers
    data_dir = args.data_dir or Path(config.paths.data_dir)
    output_dir = args.output or Path(config.paths.output_dir)

    # Load game tables
    try:
        instances = [
            Instance(load_game(data_dir, entry.game), entry.options)
            for entry in selected
        ]
    except FileNotFoundError as e:
        print(f"Error: Game data not found: {e.filename}", file=sys.stderr)
        return 1
    except SeedrouteError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.verbose:
        for index, instance in enumerate(instances):
            flags = instance.options.flags() or "-"
            print(
                f"Instance {index}: {instance.game.name} ({flags}), "
                f"{len(instance.game.slot_names())} slots"
            )

    try:
        if args.stats is not None:
            stats = collect_stats(instances, args.stats, seed, max_attempts, workers)
            print(report_stats(stats))
            return 0

        plan_source: str | None = None
        if args.plan is not None:
            if len(instances) != 1:
                print("Error: --plan requires a single instance", file=sys.stderr)
                return 1
            plan = load_plan(args.plan)
            plan_source = plan.source
            result = route_from_plan(instances[0], plan)
        else:
            result = find_routes(
                instances,
                seed,
                max_attempts=max_attempts,
                workers=workers,
                log=print if args.verbose else None,
            )
    except FileNotFoundError as e:
        print(f"Error: Plan file not found: {e.filename}", file=sys.stderr)
        return 1
    except SeedrouteError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.verbose and result.validation.warnings:
        print("Validation warnings:")
        for warning in result.validation.warnings:
            print(f"  - {warning}")

    _write_outputs(args, result, instances, output_dir, seed, race, plan_source)
    return 0


def _write_outputs(
    args: argparse.Namespace,
    result: RouteResult,
    instances: list[Instance],
    output_dir: Path,
    seed: int,
    race: bool,
    plan_source: str | None,
) -> None:
    """Write the patcher JSON and, if requested, the spoiler log."""
    if len(instances) == 1:
        tag = opt_string(seed, instances[0].options, race, plan_source=plan_source)
    else:
        tag = opt_string(seed, LogicOptions(), race) + "-multi"

    spheres = result.validation.spheres
    if plan_source is not None:
        print(f"Applied plan {tag}")
    elif not race:
        print(f"Found route with seed {seed:08x} after {result.attempts} attempt(s)")
    if args.verbose and spheres is not None:
        print(f"  Spheres: {len(spheres.spheres)}")
        print(f"  Extra slots: {len(spheres.extra)}")

    output_dir.mkdir(parents=True, exist_ok=True)
    json_path = output_dir / f"seedroute_{tag}.json"
    options = [
        {
            "hard": i.options.hard,
            "dungeons": i.options.dungeons,
            "portals": i.options.portals,
            "treewarp": i.options.treewarp,
        }
        for i in instances
    ]
    export_json(result, json_path, options)
    print(f"Written: {json_path}")

    if args.spoiler:
        spoiler_path = output_dir / f"seedroute_{tag}_spoiler.txt"
        export_spoiler_log(result, spoiler_path)
        print(f"Written: {spoiler_path}")


if __name__ == "__main__":
    sys.exit(main())
