class HubError(Exception):
    """Base class for errors surfaced to API and realtime callers."""


class ValidationError(HubError):
    pass


class NotFoundError(HubError):
    pass


class PersistenceError(HubError):
    pass


class ExternalServiceError(HubError):
    pass
