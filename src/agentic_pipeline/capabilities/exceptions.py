"""Exceptions raised by the default collaborator implementations."""


class CapabilityError(Exception):
    """Base exception for all collaborator operations."""


class CompletionError(CapabilityError):
    """Raised when no provider could answer a completion request."""


class IndexingError(CapabilityError):
    """Raised when a repository cannot be indexed."""


class ApplyError(CapabilityError):
    """Raised when file changes cannot be written to the workspace."""


class SuiteRunError(CapabilityError):
    """Raised when the test workspace cannot be prepared."""
