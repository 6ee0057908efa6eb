# meetslot/core/errors.py
"""
Error taxonomy for the scheduling core.

Only construction-time problems (bad date range, bad duration) are hard
failures. Everything else is raised close to its source and handled by the
caller one level up, so a single malformed calendar entry or an empty
roster never aborts a whole scheduling run.
"""


class MeetSlotError(Exception):
    """Base class for all scheduling errors."""


class InvalidRangeError(MeetSlotError, ValueError):
    """Raised when a Schedule is built with start date after end date."""


class InvalidDurationError(MeetSlotError, ValueError):
    """Raised when a Schedule is built with a non-positive meeting duration."""


class InvalidIntervalError(MeetSlotError, ValueError):
    """Raised when a busy interval does not satisfy start < end."""


class EmptyRosterError(MeetSlotError):
    """Raised when scoring is requested for a Schedule without participants."""


class DuplicateParticipantError(MeetSlotError):
    """Raised when a participant id is added twice to a de-duplicating Schedule."""
