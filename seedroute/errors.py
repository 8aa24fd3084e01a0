"""Exception types for seedroute."""

from __future__ import annotations


class SeedrouteError(Exception):
    """Base class for all seedroute errors."""

    pass


class ConfigurationError(SeedrouteError):
    """The logic, pool or options cannot be satisfied as authored.

    Raised before any search begins.
    """

    pass


class GraphError(ConfigurationError):
    """A logic graph references a node that does not exist."""

    def __init__(self, missing: list[tuple[str, str]]) -> None:
        self.missing = missing
        details = ", ".join(f"'{node}' -> '{ref}'" for node, ref in missing)
        super().__init__(f"Undefined node references: {details}")


class GameDataError(ConfigurationError):
    """A predicate table is malformed."""

    pass


class PlanError(ConfigurationError):
    """A fixed plan does not match the game it is applied to."""

    pass


class AttemptError(SeedrouteError):
    """A single search attempt failed; the driver retries with a new seed."""

    pass


class SearchExhaustedError(SeedrouteError):
    """The retry budget ran out without a successful fill."""

    def __init__(self, attempts: int, last_failure: str = "") -> None:
        self.attempts = attempts
        self.last_failure = last_failure
        message = f"Failed to find a route after {attempts} attempts"
        if last_failure:
            message += f" (last failure: {last_failure})"
        super().__init__(message)
