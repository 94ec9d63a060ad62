"""Clextract-specific exceptions.

Every error below is fatal for the run: the engine aborts before flushing
any queued edit, so no file is ever partially rewritten.  The CLI prints the
message and exits non-zero.
"""


class ExtractError(Exception):
    """Base class for all errors raised while extracting a function."""


class InvalidRangeError(ExtractError):
    """The requested line range is reversed or not inside one function body."""


class UnresolvedBindingError(ExtractError):
    """A reference inside the selection has no resolvable declaration."""


class NameCollisionExhausted(ExtractError):
    """No unique parameter name could be synthesized for a binding."""


class OverlappingEditError(ExtractError):
    """Two queued text edits partially overlap.

    Signals an internal contract failure in the code transformer rather
    than a user error.
    """


class ParseError(ExtractError):
    """The translation unit could not be parsed cleanly."""
