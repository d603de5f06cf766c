"""
Exception hierarchy for the morphic engine.

Real-time errors (snapshot and provider problems) are caught at the frame
edge by the session and degrade to the last good state. Offline analysis
errors propagate to the caller of the one-shot call.
"""

from typing import Any, Optional


class MorphicError(Exception):
    """Base exception for all morphic engine errors."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class InvalidSnapshot(MorphicError):
    """Raised when a frequency snapshot is empty or malformed."""


class ProviderError(MorphicError):
    """Raised when a snapshot provider cannot be attached or read."""


class DeviceUnavailable(ProviderError):
    """Raised when the audio source (device, stream, buffer) does not exist."""


class PermissionDenied(ProviderError):
    """Raised when access to the audio source is refused."""


class AnalysisError(MorphicError):
    """Raised when offline file analysis fails."""


class DecodeError(AnalysisError):
    """Raised when an audio file or buffer cannot be decoded."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        super().__init__(message, details={"file_path": file_path} if file_path else None)
        self.file_path = file_path


class EmptyBuffer(AnalysisError):
    """Raised when a decoded buffer contains no samples."""


class ConfigurationError(MorphicError, ValueError):
    """Raised when settings are outside their documented ranges."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message, details={"field": field, "value": value} if field else None)
        self.field = field
        self.value = value
