"""Error taxonomy for the restock relay."""


class RestockError(Exception):
    """Base exception for all restock relay errors."""


class ValidationError(RestockError):
    """Caller supplied missing or malformed fields."""


class CatalogLookupError(RestockError, LookupError):
    """The storefront catalog could not resolve an identifier.

    Always recovered locally: callers degrade to a partially populated
    record instead of failing the request.
    """


class AuthenticationError(RestockError):
    """A webhook signature was missing or did not verify."""


class SendError(RestockError):
    """An outbound message could not be delivered.

    ``permanent`` distinguishes failures that will never succeed on retry
    (malformed or unreachable number) from transient provider errors.
    """

    def __init__(self, message: str, *, permanent: bool = False, code: str | int | None = None):
        super().__init__(message)
        self.permanent = permanent
        self.code = code


class StorageError(RestockError):
    """The persistence layer is unavailable or rejected an operation."""
