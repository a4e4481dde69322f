"""
Errors raised by the bracket functions.

All of them are input or business-rule errors the caller can recover from.
"""


class BracketError(ValueError):
    """Base class for bracket errors."""


class InvalidTeamCountError(BracketError):
    """A bracket needs at least two teams."""


class DuplicateTeamError(BracketError):
    """The same team id appears more than once."""


class InvalidScoreError(BracketError):
    """Scores must be non-negative integers."""


class TieScoreError(BracketError):
    """A knockout match cannot end level."""


class MatchNotReadyError(BracketError):
    """The match is missing a team, is a walkover, or is already finished."""
