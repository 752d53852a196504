import sys
from pathlib import Path

import pytest

# Ensure repository root is on the import path for local package imports during tests.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from knowledge_retrieval.services.retrieval_service import RetrievalService  # noqa: E402
from knowledge_retrieval.settings import RetrievalSettings  # noqa: E402

ML_CONTENT = (
    "Machine learning is a subset of artificial intelligence. "
    "Machine learning systems learn from data."
)
DEEP_LEARNING_CONTENT = (
    "Deep learning extends machine learning with layered neural networks "
    "trained on large data sets."
)
COOKING_CONTENT = (
    "Slow cooking recipes need patience, fresh herbs, good stock and careful "
    "seasoning every time."
)


@pytest.fixture
def settings() -> RetrievalSettings:
    return RetrievalSettings(_env_file=None)


@pytest.fixture
def service(settings: RetrievalSettings) -> RetrievalService:
    return RetrievalService(settings)


@pytest.fixture
def corpus_service(service: RetrievalService) -> RetrievalService:
    service.add_document("Machine Learning", ML_CONTENT, {"tags": ["ai"]}, document_id="ml")
    service.add_document("Deep Learning", DEEP_LEARNING_CONTENT, {"tags": ["ai", "neural"]}, document_id="dl")
    service.add_document("Kitchen Notes", COOKING_CONTENT, {"tags": ["food"]}, document_id="cook")
    return service
