"""Query embedding and vector similarity search."""

from .embedding import EmbeddingService, get_embedding_service
from .vector_index import SimilaritySearchService, get_similarity_search_service

__all__ = [
    "EmbeddingService",
    "get_embedding_service",
    "SimilaritySearchService",
    "get_similarity_search_service",
]
