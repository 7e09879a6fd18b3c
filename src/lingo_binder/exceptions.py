"""Exception hierarchy."""


class LingoBinderError(Exception):
    """Base class for application errors."""

    pass


class MalformedArchive(LingoBinderError):
    """The archive is not a readable EPUB container."""

    pass


class ResourceNotFound(LingoBinderError):
    """A referenced chapter or image entry is missing from the archive."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Entry not found in archive: {path}")


class BookNotFound(LingoBinderError):
    """No stored book exists for the given id."""

    def __init__(self, book_id: str):
        self.book_id = book_id
        super().__init__(f"Book not found: {book_id}")


class ConfigurationError(LingoBinderError):
    """Provider or application settings are unusable."""

    pass


class StoreError(LingoBinderError):
    """The persistent store failed to complete an operation."""

    pass


class ProviderError(LingoBinderError):
    """Error raised by a translation backend."""

    def __init__(self, message: str, provider_name: str | None = None):
        if provider_name:
            super().__init__(f"[{provider_name}] {message}")
        else:
            super().__init__(message)
        self.provider_name = provider_name


class RateLimited(ProviderError):
    """The backend rejected the request as rate-limited or overloaded."""

    pass


class ProviderFormatError(ProviderError):
    """The backend answered with something other than the expected string array."""

    pass


class Cancelled(Exception):
    """Cooperative cancellation was requested. Not an error."""

    pass
