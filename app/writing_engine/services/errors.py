"""Exception taxonomy for the scoring and profile services."""
from __future__ import annotations


class AssessmentError(Exception):
    """Base class for errors raised by the assessment services."""


class InvalidInput(AssessmentError):
    """Caller error: text too short, malformed responses, unknown level."""


class ProviderUnavailable(AssessmentError):
    """Scoring provider unreachable, timed out or refused the request."""


class ProviderMalformedResponse(AssessmentError):
    """Scoring provider answered, but not with a usable analysis object."""


class PersistenceConflict(AssessmentError):
    """Storage failure that is not a uniqueness violation."""
