"""
Global fixtures for all unit tests.

This conftest provides autouse fixtures that prevent real provider calls:
- Environment variable isolation (prevents credential leakage and env overrides)
- Scripted chat models standing in for OpenAI/Anthropic

These fixtures apply automatically to ALL tests in tests/unit/.
"""

import os

import pytest

from src.assessment.types import CareerCatalogEntry, RiasecVector
from src.common.llm_factory import ProviderRegistry
from src.common.repositories import InMemoryCatalogRepository, InMemorySessionRepository
from src.services.provider_gateway import ProviderGateway

from fakes import ScriptedChatModel, StubConfig, no_sleep


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """
    Isolate test environment from real credentials and configurations.

    Removes per-operation LLM overrides so every test sees the registered
    defaults, and uses mock API keys to prevent accidental real API calls.
    """
    for key in list(os.environ):
        if key.startswith("LLM_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-mock-key")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test-mock-key")
    monkeypatch.setenv("DEBUG_MODE", "false")
    yield


# ===== FIXTURES =====

@pytest.fixture
def chat_model():
    return ScriptedChatModel()


@pytest.fixture
def registry(chat_model):
    builder = lambda settings, op_config: chat_model
    return ProviderRegistry(config=StubConfig(), builders={"openai": builder, "anthropic": builder})


@pytest.fixture
def gateway(registry):
    return ProviderGateway(registry, sleep=no_sleep)


@pytest.fixture
def careers():
    """Small catalog with distinct dominant types."""
    return [
        CareerCatalogEntry(
            id="1",
            name="Ingeniería Civil",
            description="Diseño y construcción de infraestructura",
            riasec_vector=RiasecVector(realistic=90, investigative=70, artistic=20, social=20, enterprising=30, conventional=50),
            duration_years=5,
            work_environment=("obras", "oficinas técnicas"),
        ),
        CareerCatalogEntry(
            id="2",
            name="Matemática",
            description="Estudio de estructuras abstractas y modelos",
            riasec_vector=RiasecVector(realistic=10, investigative=95, artistic=30, social=10, enterprising=10, conventional=60),
            duration_years=4,
        ),
        CareerCatalogEntry(
            id="3",
            name="Psicología",
            description="Comprensión del comportamiento humano",
            riasec_vector=RiasecVector(realistic=5, investigative=60, artistic=40, social=95, enterprising=30, conventional=20),
            duration_years=5,
            work_environment=("consultorios",),
        ),
        CareerCatalogEntry(
            id="4",
            name="Diseño Gráfico",
            description="Comunicación visual",
            riasec_vector=RiasecVector(realistic=20, investigative=20, artistic=95, social=40, enterprising=50, conventional=20),
            duration_years=3,
        ),
    ]


@pytest.fixture
def catalog_repository(careers):
    return InMemoryCatalogRepository(careers)


@pytest.fixture
def session_repository():
    return InMemorySessionRepository()
