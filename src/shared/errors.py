"""Custom exception classes shared by the query and presentation layers."""
from __future__ import annotations


class GrpcDebugError(Exception):
    """Base application error."""

    def __init__(self, detail: str, exit_code: int = 1) -> None:
        self.detail = detail
        self.exit_code = exit_code
        super().__init__(detail)


class NotFoundError(GrpcDebugError):
    """A referenced entity no longer exists on the remote."""

    def __init__(
        self,
        detail: str = "Entity not found",
        kind: str = "",
        entity_id: int | None = None,
    ) -> None:
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(detail=detail)


class UnsupportedVariantError(GrpcDebugError):
    """A oneof payload carries a variant the decoder does not know."""

    def __init__(self, detail: str = "Unsupported variant") -> None:
        super().__init__(detail=detail)


class TransportError(GrpcDebugError):
    """A remote call exceeded its deadline or the transport failed."""

    def __init__(
        self,
        detail: str = "Remote call failed",
        operation: str = "",
        code: str = "",
    ) -> None:
        self.operation = operation
        self.code = code
        super().__init__(detail=detail)


class MalformedPayloadError(GrpcDebugError):
    """A structured payload could not be decoded into the typed model."""

    def __init__(self, detail: str = "Malformed payload") -> None:
        super().__init__(detail=detail)


class PaginationError(GrpcDebugError):
    """The paged query stopped advancing before the end-of-list signal."""

    def __init__(self, detail: str = "Pagination did not terminate") -> None:
        super().__init__(detail=detail)


class ConfigurationError(GrpcDebugError):
    """Invalid configuration file, security mode or credential material."""

    def __init__(self, detail: str = "Configuration error") -> None:
        super().__init__(detail=detail, exit_code=2)
