"""Tests for the embedding service."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from cro_audit.services.embedding_service import (
    EMBEDDING_DIMENSIONS,
    EMBEDDING_MODEL,
    EmbeddingService,
    get_embedding_service,
)


class TestEmbeddingService:
    """Tests for EmbeddingService with the OpenAI client mocked."""

    @pytest.fixture
    def service(self) -> EmbeddingService:
        """Create an embedding service with a mocked client."""
        service = EmbeddingService()
        service.client = MagicMock()
        service.client.embeddings.create = AsyncMock()
        return service

    async def test_generate_embedding(self, service: EmbeddingService) -> None:
        """The first embedding of the response is returned."""
        vector = [0.01] * EMBEDDING_DIMENSIONS
        service.client.embeddings.create.return_value = MagicMock(
            data=[MagicMock(embedding=vector)]
        )

        result = await service.generate_embedding("checkout is slow")

        assert result == vector
        service.client.embeddings.create.assert_awaited_once_with(
            input="checkout is slow", model=EMBEDDING_MODEL
        )

    async def test_empty_response(self, service: EmbeddingService) -> None:
        """A response without data yields an empty vector."""
        service.client.embeddings.create.return_value = MagicMock(data=[])

        assert await service.generate_embedding("anything") == []

    def test_singleton(self) -> None:
        """The dependency returns one shared instance."""
        assert get_embedding_service() is get_embedding_service()
