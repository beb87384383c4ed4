"""Exceptions raised by the xthi pipeline."""


class XthiError(Exception):
    """Base class for all xthi failures."""


class SchemaError(XthiError):
    """Producer and renderer disagree on the record layout.

    This is an internal consistency violation and is never recovered from.
    """


class AggregationError(XthiError):
    """A record block could not be moved to the coordinating rank."""

    def __init__(self, message: str, rank: int = -1):
        super().__init__(message)
        self.rank = rank
