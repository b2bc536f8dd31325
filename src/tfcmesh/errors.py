# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/errors.py

"""Exception hierarchy for tfcmesh agents."""

from typing import Optional


class TfcMeshError(Exception):
    """Base class for all agent errors."""


class ConfigError(TfcMeshError):
    """Raised when an agent configuration cannot be loaded or is invalid."""


class FetchError(TfcMeshError):
    """Raised when an outbound HTTP call fails after all retries."""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        msg = f"Fetch {url} failed"
        if status_code is not None:
            msg += f" with status {status_code}"
        msg += f": {reason[:500]}"
        super().__init__(msg)


class MalformedRequestError(TfcMeshError):
    """Raised when an inbound payload cannot be decoded."""


class QueueFullError(TfcMeshError):
    """Raised when a job source is at capacity."""

    def __init__(self, capacity: int):
        self.capacity = capacity
        super().__init__(f"Job queue is full (capacity {capacity})")


class DuplicateRequestError(TfcMeshError):
    """Raised when a request id is already live in a queue."""

    def __init__(self, request_id: int):
        self.request_id = request_id
        super().__init__(f"Request {request_id} is already queued")


class AliasConflictError(TfcMeshError):
    """Raised when an alias is already registered to a different URL."""

    def __init__(self, alias: str, existing_url: str, url: str):
        self.alias = alias
        self.existing_url = existing_url
        self.url = url
        super().__init__(
            f"Alias {alias} is bound to {existing_url}, refusing {url}"
        )


class CatalogWriteError(TfcMeshError):
    """Raised when a catalog transaction fails and is rolled back."""


class CentralCatalogError(TfcMeshError):
    """Raised when the central catalog cannot be read or written."""


class TransferError(TfcMeshError):
    """Raised when a single file transfer fails."""


class ToolError(TransferError):
    """Raised when an external transfer tool exits with a non-zero status."""

    def __init__(self, argv: list, returncode: int, stderr: str = ""):
        self.argv = argv
        self.returncode = returncode
        self.stderr = stderr
        msg = f"{argv[0]} failed with return code {returncode}"
        if stderr:
            msg += f"\nSTDERR: {stderr[:500]}"
        super().__init__(msg)


class IntegrityMismatchError(TransferError):
    """Raised when received data does not match the announced digest or size."""

    def __init__(self, lfn: str, field: str, expected, actual):
        self.lfn = lfn
        self.field = field
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{lfn}: {field} mismatch, expected {expected}, got {actual}"
        )
