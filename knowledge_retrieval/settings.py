"""Application configuration for the knowledge retrieval engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from pydantic import AnyHttpUrl, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:  # pragma: no cover
    from knowledge_retrieval.services.selection_service import DocumentSelectionService


class RetrievalSettings(BaseSettings):  # type: ignore[misc]
    """Settings controlling chunking, scoring and the optional selection call."""

    chunk_size: int = Field(500, gt=0, description="Words per chunk window")
    chunk_overlap: int = Field(50, ge=0, description="Words shared by consecutive chunks")
    embedding_dimension: int = Field(384, gt=0, description="Length of every stored embedding")

    bm25_k1: float = Field(1.5, ge=0.0, description="BM25 term frequency saturation")
    bm25_b: float = Field(0.75, ge=0.0, le=1.0, description="BM25 length normalization")
    semantic_weight: float = Field(0.6, ge=0.0, description="Weight of the semantic signal")
    keyword_weight: float = Field(0.4, ge=0.0, description="Weight of the BM25 signal")
    relevance_scale: float = Field(
        5.0,
        gt=0.0,
        description=(
            "Divisor mapping boosted scores onto [0, 1] relevance. Defaults to 5 so a "
            "strong single-document match clears 0.5; with 10, boosted two-term matches "
            "top out below 0.5"
        ),
    )

    default_top_k: int = Field(3, gt=0, description="Results returned when top_k is omitted")
    default_threshold: float = Field(
        0.0, ge=0.0, le=1.0, description="Minimum relevance when threshold is omitted"
    )

    min_content_chars: int = Field(50, ge=0, description="Shortest accepted document content")
    max_content_chars: int = Field(
        1_000_000, gt=0, description="Longest accepted document content"
    )
    ingest_workers: int = Field(4, gt=0, description="Thread pool size for batch ingestion")

    selection_enabled: bool = Field(
        False, description="Ask an external model to pick the most relevant documents"
    )
    selection_candidates: int = Field(
        10, gt=0, description="Locally ranked documents offered to the external model"
    )
    selection_timeout_s: float = Field(
        8.0, gt=0.0, description="Hard deadline (in seconds) for the external selection call"
    )
    anthropic_api_key: Optional[str] = Field(None, repr=False)
    anthropic_model: str = Field("claude-3-5-sonnet-20241022")
    anthropic_base_url: AnyHttpUrl = Field("https://api.anthropic.com")  # type: ignore[assignment]

    model_config = SettingsConfigDict(env_prefix="RETRIEVAL_", env_file=".env", extra="ignore")

    @model_validator(mode="after")
    def validate_chunk_window(self) -> "RetrievalSettings":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )
        if self.min_content_chars > self.max_content_chars:
            raise ValueError("min_content_chars must not exceed max_content_chars")
        return self

    def build_selection_service(self) -> Optional["DocumentSelectionService"]:
        """Return the external selection service, or ``None`` when it is not configured."""

        if not self.selection_enabled or not self.anthropic_api_key:
            return None

        from knowledge_retrieval.providers.clients.anthropic import AnthropicSelectionClient
        from knowledge_retrieval.services.selection_service import DocumentSelectionService

        client = AnthropicSelectionClient(
            api_key=self.anthropic_api_key,
            model=self.anthropic_model,
            base_url=str(self.anthropic_base_url).rstrip("/"),
            timeout=self.selection_timeout_s,
        )
        return DocumentSelectionService(client, timeout_s=self.selection_timeout_s)
