from __future__ import annotations

from enum import Enum


class DashboardError(Exception):
    """Base class for funding dashboard failures."""


class InitError(DashboardError):
    """The dataset could not be attached (network failure, malformed file)."""


class TransportError(DashboardError):
    """A range read failed or would exceed the session byte ceiling."""


class ProjectionError(DashboardError):
    """A raw row could not be mapped onto a Company."""


class QueryErrorKind(str, Enum):
    NOT_READY = "not_ready"
    TIMEOUT = "timeout"
    ENGINE = "engine"


class QueryError(DashboardError):
    def __init__(self, message: str, *, kind: QueryErrorKind = QueryErrorKind.ENGINE) -> None:
        super().__init__(message)
        self.kind = kind
