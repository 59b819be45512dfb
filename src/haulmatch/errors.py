"""Exception hierarchy for the haulmatch dispatch core."""


class HaulmatchError(Exception):
    """Base class for all haulmatch errors."""


class ConfigurationError(HaulmatchError, ValueError):
    """Invalid configuration. Raised at construction or registration time."""


class DuplicateUnitError(ConfigurationError):
    """A scheduling unit with the same name is already registered."""

    def __init__(self, name: str):
        super().__init__(f"Scheduling unit already registered: {name!r}")
        self.name = name


class UnitExecutionError(HaulmatchError):
    """A scheduling unit raised during execute()."""

    def __init__(self, unit: str, message: str):
        super().__init__(f"{unit}: {message}")
        self.unit = unit
        self.message = message


class UnitTimeoutError(UnitExecutionError):
    """A coroutine unit did not finish within the configured timeout."""

    def __init__(self, unit: str, timeout: float):
        super().__init__(unit, f"timed out after {timeout:g}s")
        self.timeout = timeout


class MarketContextError(HaulmatchError):
    """External market signals could not be fetched."""


class ConsistencyError(HaulmatchError):
    """A job or provider vanished between scoring and acceptance."""
