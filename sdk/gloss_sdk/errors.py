"""
Error types for the Gloss SDK.

This module defines all exception types raised by the SDK:
- GlossError: Base exception
- MalformedKeyError: Log key or date string has the wrong shape
- MalformedRecordError: Stored value is not a recognized entry shape
- ValidationError: Caller input rejected before any store call
- StoreError: The record store failed a read, write or removal
- RecordNotFoundError: The record store has no current version for a key
- IdentityError: The identity provider could not produce a controller key
- AssetUploadError: The blob publisher rejected an upload

Invariants:
    - All errors inherit from GlossError
    - MalformedRecordError never escapes the codec
    - Ownership failures are not errors; they surface as None/False results
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class GlossError(Exception):
    """Base exception for all Gloss SDK errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "GLOSS_ERROR"
        self.details = details or {}


class MalformedKeyError(GlossError):
    """A log key or day string could not be parsed.

    Raised when:
    - A log key has no date segment before the first '/'
    - A day string is not YYYY-MM-DD
    """

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message, code="MALFORMED_KEY", details={"key": key})
        self.key = key


class MalformedRecordError(GlossError):
    """A stored value does not decode to any known entry shape."""

    def __init__(self, message: str, reason: Optional[str] = None) -> None:
        super().__init__(message, code="MALFORMED_RECORD", details={"reason": reason})
        self.reason = reason


class ValidationError(GlossError):
    """Caller input failed validation.

    Raised when:
    - Log text is empty
    - Tags or assets are not strings
    """

    def __init__(self, message: str, field_name: Optional[str] = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR", details={"field": field_name})
        self.field_name = field_name


class StoreError(GlossError):
    """The record store failed an operation.

    Read paths propagate this to the caller. Removal paths convert it
    into a False result.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        key: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="STORE_ERROR",
            details={"operation": operation, "key": key},
        )
        self.operation = operation
        self.key = key


class RecordNotFoundError(StoreError):
    """No current version exists for the addressed record key."""

    def __init__(self, key: str, operation: str = "remove") -> None:
        super().__init__(f"Record not found: {key}", operation=operation, key=key)
        self.code = "RECORD_NOT_FOUND"


class IdentityError(GlossError):
    """The identity provider failed to return a controller key."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="IDENTITY_ERROR")


class AssetUploadError(GlossError):
    """Uploading a binary asset failed.

    Attributes:
        status_code: HTTP status returned by the storage service, if any
        storage_url: Storage service the upload was sent to
    """

    def __init__(
        self,
        message: str,
        storage_url: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(
            message,
            code="ASSET_UPLOAD_ERROR",
            details={"storage_url": storage_url, "status_code": status_code},
        )
        self.storage_url = storage_url
        self.status_code = status_code
