"""Exceptions raised by the departure board core and its data providers."""


class TransitBoardError(Exception):
    """Base class for all transitboard errors."""


class StopNotFound(TransitBoardError, LookupError):
    """A monitored stop code has no matching stop in the static schedule."""

    def __init__(self, stop_code: str):
        super().__init__(f"Stop code {stop_code} not found")
        self.stop_code = stop_code


class MalformedTimestamp(TransitBoardError, ValueError):
    """A feed timestamp is neither a plain integer nor a {low, high} pair."""


class FeedDecodeError(TransitBoardError):
    """The real-time feed could not be decoded."""
