class ForecastIndexError(Exception):
    """Base class for every error raised by forecast_index."""


class MalformedInputError(ForecastIndexError, ValueError):
    """A source payload is missing a required field or has the wrong shape."""

    def __init__(self, source: str, detail: str):
        self.source = source
        self.detail = detail
        super().__init__(f"Malformed {source} payload: {detail}")


class DegenerateScalingError(ForecastIndexError, ValueError):
    """The log-scaled map is singular for the given scaling parameters."""


class SourceFetchError(ForecastIndexError):
    """A source API request failed after all retries."""

    def __init__(self, source: str, path: str, cause: Exception):
        self.source = source
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to fetch {source} {path}: {cause}")


class UnorderedSeriesError(ForecastIndexError, ValueError):
    """A series handed to a transform has a point dated before its predecessor."""


class UnknownQuestionError(ForecastIndexError, KeyError):
    """A question key is not in the question registry."""

    def __init__(self, keys):
        self.keys = list(keys)
        super().__init__(f"Unknown question keys: {self.keys}")

    def __str__(self):
        # KeyError would repr() the message
        return self.args[0]


class ConfigError(ForecastIndexError, ValueError):
    """The question registry is missing a field or references an undefined question."""
