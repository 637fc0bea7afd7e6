"""
Exceptions raised by the league engine.

Domain refusals (bad scores, premature stage changes, blank names) are not
errors: operations hand back the unchanged state instead. These exceptions
cover the few structural failures a caller has to report.
"""


class LeagueError(Exception):
    """Base class for league errors."""


class DocumentError(LeagueError):
    """A persisted or imported document could not be decoded or is inconsistent."""


class ConflictError(LeagueError):
    """The state changed underneath a writer too many times in a row."""
