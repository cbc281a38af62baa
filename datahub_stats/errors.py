"""Exception types raised by the statistics engine."""


class DatahubStatsError(Exception):
    """Base class for all engine errors."""


class InvalidPreset(DatahubStatsError, ValueError):
    """Unrecognised date-range preset key."""

    def __init__(self, preset: str):
        self.preset = preset
        super().__init__(f"Unknown date-range preset: {preset!r}")


class InvalidDateRange(DatahubStatsError, ValueError):
    """A date range whose start lies after its end."""


class InvalidStacking(DatahubStatsError, ValueError):
    """Category field not available for the requested dataset."""

    def __init__(self, dataset: str, field: str, allowed: list[str]):
        self.dataset = dataset
        self.field = field
        super().__init__(
            f"Cannot stack {dataset} by {field!r}; expected one of {allowed}"
        )


class EmptySample(DatahubStatsError, ValueError):
    """Statistics requested on a zero-length sample."""


class UnknownSection(DatahubStatsError, ValueError):
    """Section name not registered with the tracker."""


class SignalSourceError(DatahubStatsError, RuntimeError):
    """A tracker signal source could not be registered."""


class SignalSourceUnavailable(SignalSourceError):
    """The host does not support the requested signal source."""
