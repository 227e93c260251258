"""Semantic-search exceptions."""


class RAGError(Exception):
    """Base exception for semantic-search operations."""


class EmbeddingError(RAGError):
    """Raised when embedding generation fails."""


class VectorStoreError(RAGError):
    """Raised when vector store operations fail."""


class RetrievalError(RAGError):
    """Raised when a query is rejected or cannot be answered."""
