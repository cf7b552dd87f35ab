"""Error taxonomy shared by all rag_sync_bridge components."""


class ConfigurationError(ValueError):
    """Raised for missing or invalid settings, e.g. a mismatched vector dimension.

    Fatal: callers are expected to fail fast instead of handling it.
    """


class BackendUnavailable(Exception):
    """Raised when an HTTP collaborator (embedding, vector index, LLM) cannot serve a request.

    Covers transport errors, timeouts and non-2xx responses.
    """


class ModelMissing(BackendUnavailable):
    """Raised when the configured model is not installed on the backend."""


class NotFound(LookupError):
    """Raised when a referenced document does not exist in the document store."""


class SyncLogStateError(RuntimeError):
    """Raised when a sync run that already reached a terminal status is updated again."""
