"""
Error taxonomy for access control, associations and license gating.

Every kind here is an expected outcome the caller can act on. They travel
as ``DomainError`` instances up to the API layer, which turns them into a
structured ``{"error": kind, "detail": message}`` body. Storage failures are
not part of this taxonomy.
"""

from enum import Enum


class ErrorKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"

    # Association pairing rules
    INVALID_PAIR = "invalid_pair"
    INVALID_PARENT_TYPE = "invalid_parent_type"
    INVALID_CHILD_TYPE = "invalid_child_type"
    DUPLICATE = "duplicate"
    CIRCULAR = "circular"

    # Report creation gating
    NO_ACTIVE_LICENSE = "no_active_license"
    LICENSE_EXHAUSTED = "license_exhausted"
    LICENSE_EXPIRED = "license_expired"


HTTP_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_PAIR: 400,
    ErrorKind.INVALID_PARENT_TYPE: 400,
    ErrorKind.INVALID_CHILD_TYPE: 400,
    ErrorKind.DUPLICATE: 409,
    ErrorKind.CIRCULAR: 409,
    ErrorKind.NO_ACTIVE_LICENSE: 403,
    ErrorKind.LICENSE_EXHAUSTED: 403,
    ErrorKind.LICENSE_EXPIRED: 403,
}


class DomainError(Exception):
    """An expected, caller-recoverable refusal."""

    kind: ErrorKind = ErrorKind.FORBIDDEN

    def __init__(self, message: str, kind: ErrorKind | None = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]

    def to_dict(self) -> dict[str, str]:
        return {"error": self.kind.value, "detail": self.message}


class AccessDenied(DomainError):
    kind = ErrorKind.FORBIDDEN


class EntityNotFound(DomainError):
    kind = ErrorKind.NOT_FOUND


class AssociationRejected(DomainError):
    kind = ErrorKind.INVALID_PAIR


class LicenseUnavailable(DomainError):
    kind = ErrorKind.NO_ACTIVE_LICENSE
