"""Default collaborators: completion client, repository index, checker, applier, test runner."""

from agentic_pipeline.capabilities.edit_applier import WorkspaceEditApplier
from agentic_pipeline.capabilities.exceptions import (
    ApplyError,
    CapabilityError,
    CompletionError,
    IndexingError,
    SuiteRunError,
)
from agentic_pipeline.capabilities.llm_client import LLMClient
from agentic_pipeline.capabilities.protocols import (
    CodeChecker,
    CompletionProvider,
    EditApplier,
    RepositoryIndexReader,
    SemanticSearch,
    SuiteRunner,
)
from agentic_pipeline.capabilities.repo_indexer import RepoIndexer
from agentic_pipeline.capabilities.repository import IndexedRepository
from agentic_pipeline.capabilities.static_checker import StaticChecker
from agentic_pipeline.capabilities.suite_runner import CommandSuiteRunner

__all__ = [
    "ApplyError",
    "CapabilityError",
    "CodeChecker",
    "CommandSuiteRunner",
    "CompletionError",
    "CompletionProvider",
    "EditApplier",
    "IndexedRepository",
    "IndexingError",
    "LLMClient",
    "RepoIndexer",
    "RepositoryIndexReader",
    "SemanticSearch",
    "StaticChecker",
    "SuiteRunError",
    "SuiteRunner",
    "WorkspaceEditApplier",
]
