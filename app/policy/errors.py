"""Failure conditions raised by the leave decision core.

Business outcomes (rejections, manager review) are never raised; they come
back as a Decision. Only malformed input and collaborator failures use the
exception channel.
"""


class InvalidInput(ValueError):
    """Missing or malformed request data (dates, identifiers, config values)."""


class InvalidDate(InvalidInput):
    """A value that is not a well-formed YYYY-MM-DD calendar date."""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid calendar date: {value!r} (expected YYYY-MM-DD)")


class DataUnavailable(RuntimeError):
    """A team snapshot or work-item query failed, so no decision can be made."""

    def __init__(self, source: str, cause: Exception | None = None):
        self.source = source
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"{source} query failed{detail}")
