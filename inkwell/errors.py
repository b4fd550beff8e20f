"""Error taxonomy shared by the store, the services and the adapters."""


class InkwellError(Exception):
    """Base class for every error raised by Inkwell."""

    kind = "error"


class NotFoundError(InkwellError):
    """An expected file or directory is absent."""

    kind = "not_found"


class ConflictError(InkwellError):
    """A name collision, e.g. creating a project whose directory exists."""

    kind = "conflict"


class ParseError(InkwellError):
    """Malformed JSON, manifest or archive."""

    kind = "parse"


class StoreIOError(InkwellError):
    """Generic filesystem failure (permissions, disk full, ...)."""

    kind = "io"


class ValidationError(InkwellError):
    """Caller supplied an invalid name, id or value."""

    kind = "validation"


class AIError(InkwellError):
    """A text-generation endpoint failed or returned an unusable response."""

    kind = "ai"
