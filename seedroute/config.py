"""Configuration parsing for seedroute."""

from __future__ import annotations

import hashlib
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# Use tomllib (Python 3.11+) with fallback to tomli
if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError as e:
        raise ImportError(
            "tomli is required for Python < 3.11. Install with: pip install tomli"
        ) from e

# Short game names accepted in option strings like "s+hdp"
GAME_ALIASES = {"a": "ages", "s": "seasons"}


@dataclass
class LogicOptions:
    """Per-instance options that change which terms and edges are active."""

    hard: bool = False  # enable hard-only terms
    dungeons: bool = False  # shuffle dungeon entrances
    portals: bool = False  # shuffle portal connections
    treewarp: bool = False  # no logic effect, passed to the patcher

    def flags(self) -> str:
        """Option letters, in the order they were introduced."""
        letters = ""
        if self.treewarp:
            letters += "t"
        if self.hard:
            letters += "h"
        if self.dungeons:
            letters += "d"
        if self.portals:
            letters += "p"
        return letters


@dataclass
class InstanceConfig:
    """One game instance of a (possibly multiworld) run."""

    game: str = "ages"
    options: LogicOptions = field(default_factory=LogicOptions)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InstanceConfig:
        """Create InstanceConfig from an [[instances]] table."""
        game = str(data.get("game", "ages"))
        return cls(
            game=GAME_ALIASES.get(game, game),
            options=LogicOptions(
                hard=data.get("hard", False),
                dungeons=data.get("dungeons", False),
                portals=data.get("portals", False),
                treewarp=data.get("treewarp", False),
            ),
        )


@dataclass
class RunConfig:
    """Search configuration shared by all instances."""

    seed: int | None = None  # None = random
    race: bool = False
    max_attempts: int = 100
    workers: int = 1

    def __post_init__(self) -> None:
        """Validate run configuration."""
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be positive, got {self.max_attempts}")
        if self.workers < 1:
            raise ValueError(f"workers must be positive, got {self.workers}")
        if self.seed is not None and not 0 <= self.seed <= 0xFFFFFFFF:
            raise ValueError(f"seed must be a 32-bit unsigned value, got {self.seed}")


@dataclass
class PathsConfig:
    """File paths configuration."""

    output_dir: str = "./output"
    data_dir: str = "./data"


@dataclass
class Config:
    """Main configuration container."""

    run: RunConfig = field(default_factory=RunConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    instances: list[InstanceConfig] = field(
        default_factory=lambda: [InstanceConfig()]
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Create Config from a dictionary (e.g., parsed TOML)."""
        run_section = data.get("run", {})
        paths_section = data.get("paths", {})
        instances_section = data.get("instances", [])

        seed = run_section.get("seed")
        if isinstance(seed, str):
            seed = parse_seed(seed)

        instances = [InstanceConfig.from_dict(entry) for entry in instances_section]

        return cls(
            run=RunConfig(
                seed=seed,
                race=run_section.get("race", False),
                max_attempts=run_section.get("max_attempts", 100),
                workers=run_section.get("workers", 1),
            ),
            paths=PathsConfig(
                output_dir=paths_section.get("output_dir", "./output"),
                data_dir=paths_section.get("data_dir", "./data"),
            ),
            instances=instances or [InstanceConfig()],
        )

    @classmethod
    def from_toml(cls, path: str | Path) -> Config:
        """Load configuration from a TOML file."""
        path = Path(path)
        with path.open("rb") as f:
            data = tomllib.load(f)
        return cls.from_dict(data)


def load_config(path: str | Path) -> Config:
    """Load configuration from a TOML file.

    This is a convenience function that wraps Config.from_toml().

    Args:
        path: Path to the TOML configuration file.

    Returns:
        Parsed Config object.
    """
    return Config.from_toml(path)


def parse_seed(text: str) -> int:
    """Parse a 32-bit seed written as a hex string, with or without 0x.

    Raises:
        ValueError: If the string is not a 32-bit hex number.
    """
    cleaned = text.strip().lower().removeprefix("0x")
    try:
        value = int(cleaned, 16)
    except ValueError:
        raise ValueError(f'invalid seed "{text}"') from None
    if not 0 <= value <= 0xFFFFFFFF:
        raise ValueError(f'invalid seed "{text}"')
    return value


def parse_instance_string(text: str) -> InstanceConfig:
    """Parse an instance description like "ages+hd" or "s+p".

    The part before "+" is the game (full or short name); each letter after
    it enables an option: t(reewarp), h(ard), d(ungeons), p(ortals).

    Raises:
        ValueError: On an empty string, extra "+" or an unknown flag.
    """
    parts = text.split("+")
    if not parts[0] or len(parts) > 2:
        raise ValueError(f"bad option string: {text}")

    game = GAME_ALIASES.get(parts[0], parts[0])
    options = LogicOptions()
    if len(parts) == 2:
        for letter in parts[1]:
            if letter == "t":
                options.treewarp = True
            elif letter == "h":
                options.hard = True
            elif letter == "d":
                options.dungeons = True
            elif letter == "p":
                options.portals = True
            else:
                raise ValueError(f"unknown flag: {letter}")
    return InstanceConfig(game=game, options=options)


def opt_string(
    seed: int,
    options: LogicOptions,
    race: bool = False,
    sep: str = "-",
    plan_source: str | None = None,
) -> str:
    """Build the seed/option tag used in output file names.

    Args:
        seed: 32-bit seed.
        options: Options of the instance.
        race: Hide most of the seed.
        sep: Separator between seed and option letters.
        plan_source: Text of a fixed plan; plans are tagged by hash instead
            of seed, and only treewarp is reported.
    """
    if plan_source is not None:
        digest = hashlib.sha1(plan_source.encode("utf-8")).digest()
        tag = f"plan-{((digest[0] << 8) + digest[1]) >> 4:03x}"
        return tag + (sep + "t" if options.treewarp else "")

    tag = f"race-{seed >> 20:03x}" if race else f"{seed:08x}"
    flags = options.flags()
    return tag + (sep + flags if flags else "")
