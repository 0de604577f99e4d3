"""Exception types raised across fleetaudit."""

from __future__ import annotations

from typing import Optional


class FleetAuditError(Exception):
    """Base class for all fleetaudit errors."""


class CatalogUnavailableError(FleetAuditError):
    """Neither the catalog cache nor the remote service produced a catalog."""


class BaselineLoadError(FleetAuditError):
    """A baseline definition file could not be read or parsed."""


class GraphRequestError(FleetAuditError):
    """A request to the device-management service failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, timed_out: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.timed_out = timed_out
