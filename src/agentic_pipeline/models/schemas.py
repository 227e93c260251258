"""Pydantic models for the repository index and semantic retrieval."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class SymbolInfo(BaseModel):
    """A declared symbol (function, class, method, arrow function)."""

    model_config = ConfigDict(frozen=False)

    name: str
    type: str  # one of "function", "class", "method", "arrow_function"
    file_path: str
    start_line: int
    end_line: int
    source_code: str = ""


class FileInfo(BaseModel):
    """One indexed source file."""

    model_config = ConfigDict(frozen=False)

    file_path: str
    relative_path: str
    language: str  # "javascript", "typescript", "tsx", "python"
    symbols: list[SymbolInfo] = Field(default_factory=list)
    imports: list[str] = Field(default_factory=list)  # raw import specifiers
    dependencies: list[str] = Field(default_factory=list)  # resolved relative paths
    hash: str  # SHA256 of file content
    size: int = 0
    line_count: int = 0
    complexity: float = 1.0
    errors: list[str] = Field(default_factory=list)


class RepoIndex(BaseModel):
    """Snapshot of a repository's files, symbols and dependency graph."""

    model_config = ConfigDict(frozen=False)

    repo_path: str
    files: list[FileInfo] = Field(default_factory=list)
    dependency_graph: dict[str, list[str]] = Field(default_factory=dict)
    framework: str = "unknown"
    dependencies: dict[str, str] = Field(default_factory=dict)
    total_files: int = 0
    total_symbols: int = 0
    indexed_at: datetime = Field(default_factory=datetime.now)


class RepoSummary(BaseModel):
    model_config = ConfigDict(frozen=False)

    total_files: int = 0
    total_elements: int = 0
    average_complexity: float = 0.0


class EmbeddingRecord(BaseModel):
    """Embedding vector with metadata."""

    model_config = ConfigDict(frozen=False)

    id: str  # "{relative_path}::{symbol_name}"
    file_path: str
    symbol: str
    type: str
    source_code: str
    hash: str
    imports: list[str] = Field(default_factory=list)
    embedding_vector: Optional[list[float]] = None


class RetrievalResult(BaseModel):
    """Result from vector store retrieval."""

    model_config = ConfigDict(frozen=False)

    id: str
    file_path: str
    symbol: str
    type: str
    source_code: str
    distance: float
    similarity: float
    metadata: dict[str, Any] = Field(default_factory=dict)
