"""Error taxonomy shared by the provider clients and the search pipeline.

Only ValidationError, AuthError and Cancelled are allowed to escape a
pipeline call. The rest are raised by the transport layer and absorbed by
the services, which degrade to a smaller result instead.
"""


class TripFinderError(Exception):
    """Base class for all TripFinder errors."""


class ValidationError(TripFinderError):
    """Caller input is malformed. Raised before any network call."""


class AuthError(TripFinderError):
    """The provider credential exchange failed."""


class ProviderError(TripFinderError):
    """A provider call failed with something other than a rate limit."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimited(TripFinderError):
    """The provider answered 429 (or its body-level equivalent)."""


class ParseError(TripFinderError):
    """A provider payload is not the JSON object a call expects.

    Missing or mistyped fields inside a payload are not errors. The
    extractors in services.json_path return sentinels for those.
    """


class NoCandidatesError(TripFinderError):
    """Discovery found nothing. Callers treat this as an empty result."""


class Cancelled(TripFinderError):
    """The search was cancelled or ran past its deadline."""
