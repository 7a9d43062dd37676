"""Exception hierarchy for snowdays.

Per-reading and per-parameter failures are recovered locally by the
pipelines (logged and excluded). Only structural problems and a complete
absence of data are raised to callers.
"""


class SnowdaysError(Exception):
    """Base class for all snowdays errors."""


class ReadingParseError(SnowdaysError, ValueError):
    """A single raw reading could not be normalized (bad timestamp or value)."""


class SourceUnavailableError(SnowdaysError):
    """A parameter could not be fetched from the data source.

    Attributes:
        parameter: Parameter name (e.g. "temperature")
    """

    def __init__(self, parameter: str, message: str):
        super().__init__(f"{parameter}: {message}")
        self.parameter = parameter


class NoReadingsError(SnowdaysError):
    """A recompute was requested but no usable readings were found."""


class SentinelViolationError(SnowdaysError, ValueError):
    """A record mixes the rain sentinel with a real measurement."""
