from __future__ import annotations


class ActionChainError(Exception):
    """Base class for action chain generation errors."""


class RequisiteError(ActionChainError, ValueError):
    """Raised when a state cannot be used as a requisite target."""


class ArtifactWriteError(ActionChainError, RuntimeError):
    """Raised when a chunk file or its folder cannot be written."""
