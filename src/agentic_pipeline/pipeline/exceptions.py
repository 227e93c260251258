"""Exceptions for pipeline operations.

Step-level exceptions are raised by handlers and caught only by the executor.
"""


class PipelineError(Exception):
    """Base exception for all pipeline operations."""


class TaskConfigurationError(PipelineError):
    """Raised when a task cannot be created from the given inputs."""


class UnknownTaskTypeError(TaskConfigurationError):
    """Raised when a task type has no step plan."""


class ConfigurationUpdateError(PipelineError):
    """Raised when a configuration update is rejected."""


class GraphBuildError(PipelineError):
    """Raised when the task state machine cannot be compiled."""


class StepExecutionError(PipelineError):
    """Base exception for failures inside a step handler."""


class ResponseParseError(StepExecutionError):
    """Raised when a completion cannot be parsed into the expected structure."""


class MissingStepOutputError(StepExecutionError):
    """Raised when a step needs the output of an earlier step that never completed."""


class ConstraintViolationError(StepExecutionError):
    """Raised when proposed changes break the task's constraints."""


class SimulationConflictError(StepExecutionError):
    """Raised when the dry-run apply reports conflicts."""


class CorrectionError(StepExecutionError):
    """Raised when a correction cannot be obtained or applied."""
