"""Error taxonomy shared by the services and the HTTP layer.

Every user-visible failure is a ``DocumentError`` carrying an HTTP status and
a short public message. Internal detail (provider bodies, tracebacks) is only
ever logged, never placed in ``message``.
"""


class DocumentError(Exception):
    """Base class for failures surfaced to API callers."""

    status_code: int = 500
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(DocumentError):
    status_code = 400
    default_message = "Invalid input"


class SecurityRejected(DocumentError):
    status_code = 400
    default_message = "Security Alert: File rejected due to virus detection."


class NotFound(DocumentError):
    status_code = 404
    default_message = "Document not found"


class BlobMissing(DocumentError):
    """The record exists but its stored file does not."""

    status_code = 410
    default_message = "Document file is no longer available in storage"


class StorageUnavailable(DocumentError):
    status_code = 500
    default_message = "File storage is unavailable, please retry later"


class PersistenceFailed(DocumentError):
    status_code = 500
    default_message = "Could not save document metadata, please retry later"


class ScanUnavailable(DocumentError):
    status_code = 503
    default_message = "Malware scanning is unavailable, please retry later"


class ObjectStoreError(Exception):
    """Raised by object store adapters on any provider or IO failure."""
    pass


class ScannerUnavailable(Exception):
    """Raised by scanner adapters when the engine cannot give a verdict."""
    pass
