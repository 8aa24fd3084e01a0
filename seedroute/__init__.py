"""seedroute core - beatable item placement for Oracle of Ages/Seasons style games."""

__version__ = "0.1.0"

from seedroute.bimap import BiMap
from seedroute.config import (
    Config,
    InstanceConfig,
    LogicOptions,
    PathsConfig,
    RunConfig,
    load_config,
)
from seedroute.errors import (
    AttemptError,
    ConfigurationError,
    GameDataError,
    GraphError,
    PlanError,
    SearchExhaustedError,
    SeedrouteError,
)
from seedroute.evaluator import Evaluator, evaluate
from seedroute.game_data import GameData, load_game, load_game_data
from seedroute.graph import CompositeRoot, LogicGraph, Node, build_graph
from seedroute.logic import (
    And,
    AndSlot,
    Hard,
    HardAnd,
    HardOr,
    NodeDef,
    NodeKind,
    Or,
    OrSlot,
    PlacedItem,
    Root,
    SideChannels,
)
from seedroute.output import export_json, export_spoiler_log, route_to_dict
from seedroute.plan import Plan, load_plan, route_from_plan
from seedroute.route import Instance, RouteInfo, RouteResult, find_routes
from seedroute.spheres import Check, SphereResult, build_spheres
from seedroute.stats import RunStats, collect_stats, report_stats
from seedroute.validator import ValidationResult, validate_routes

__all__ = [
    # Config
    "Config",
    "InstanceConfig",
    "LogicOptions",
    "PathsConfig",
    "RunConfig",
    "load_config",
    # Errors
    "AttemptError",
    "ConfigurationError",
    "GameDataError",
    "GraphError",
    "PlanError",
    "SearchExhaustedError",
    "SeedrouteError",
    # Logic
    "And",
    "AndSlot",
    "Hard",
    "HardAnd",
    "HardOr",
    "NodeDef",
    "NodeKind",
    "Or",
    "OrSlot",
    "PlacedItem",
    "Root",
    "SideChannels",
    "BiMap",
    # Game data
    "GameData",
    "load_game",
    "load_game_data",
    # Graph
    "CompositeRoot",
    "LogicGraph",
    "Node",
    "build_graph",
    "Evaluator",
    "evaluate",
    # Search
    "Instance",
    "RouteInfo",
    "RouteResult",
    "find_routes",
    # Spheres
    "Check",
    "SphereResult",
    "build_spheres",
    # Validator
    "ValidationResult",
    "validate_routes",
    # Plans
    "Plan",
    "load_plan",
    "route_from_plan",
    # Statistics
    "RunStats",
    "collect_stats",
    "report_stats",
    # Output
    "export_json",
    "export_spoiler_log",
    "route_to_dict",
]
