# errors.py
"""
Error taxonomy.

Geometry, placement and tessellation problems are recovered locally by the
generators (dropped ring, partial layer, empty layer). Network-fatal and
import-parse errors reach the caller, since they mean a requested operation
did not happen.
"""
from __future__ import annotations
from typing import List, Optional


class GeoDashboardError(Exception):
    """Base class for all errors raised by this project."""


class GeometryValidationError(GeoDashboardError):
    """A ring has fewer than three vertices, NaN coordinates or is not closed."""


class BoundaryMismatchError(GeoDashboardError):
    """Two adjacent taluks no longer share a declared border vertex."""


class TessellationError(GeoDashboardError):
    """The Voronoi step could not run on the given seed points."""


class ScanError(GeoDashboardError):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NetworkRateLimited(ScanError):
    """HTTP 429 from the spatial search endpoint."""


class NetworkGatewayError(ScanError):
    """HTTP 502 / 504: the query was too heavy or the gateway gave up."""


class NetworkTimeout(ScanError):
    """The request was aborted client-side after the timeout."""


class NetworkFatal(ScanError):
    """All recovery for a top-level scan is exhausted."""

    def __init__(self, message: str, status: Optional[int] = None, partial: Optional[List] = None):
        super().__init__(message, status)
        # stores collected by a multi-region scan before the failure
        self.partial = partial or []


class ImportParseError(GeoDashboardError):
    """An uploaded CSV / JSON document could not be read. Nothing was merged."""
