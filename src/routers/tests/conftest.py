"""Shared fixtures for HTTP surface tests."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from src.cycle_engine.config_loader import load_engine_config
from src.cycle_engine.models import CycleRecord
from src.cycle_engine.scoring import WeightedAverageScorer
from src.cycle_engine.store import InMemoryHistoryStore
from src.dependencies import get_engine_service
from src.main import create_app
from src.services.engine_service import EngineService

NOW = datetime(2026, 1, 10, 9, 0, tzinfo=timezone.utc)
SEEDED_NOW = datetime(2025, 11, 1, 9, 0, tzinfo=timezone.utc)


def _client_for(service: EngineService) -> TestClient:
    # Lifespan is not entered: the service is injected instead of init_service()
    app = create_app()
    app.dependency_overrides[get_engine_service] = lambda: service
    return TestClient(app)


@pytest.fixture
def service() -> Iterator[EngineService]:
    """Empty-history service with a fixed query date."""
    svc = EngineService(config=load_engine_config(), clock=lambda: NOW)
    yield svc
    svc.close()


@pytest.fixture
def seeded_service() -> Iterator[EngineService]:
    """Six regular 28-day records and the adaptive scorer wired in."""
    start = date(2025, 6, 1)
    records = [
        CycleRecord(start + timedelta(days=28 * i), start + timedelta(days=28 * i + 4))
        for i in range(6)
    ]
    svc = EngineService(
        config=load_engine_config(),
        store=InMemoryHistoryStore(cycles=records),
        adaptive_scorer=WeightedAverageScorer(),
        clock=lambda: SEEDED_NOW,
    )
    yield svc
    svc.close()


@pytest.fixture
def client(service: EngineService) -> TestClient:
    return _client_for(service)


@pytest.fixture
def seeded_client(seeded_service: EngineService) -> TestClient:
    return _client_for(seeded_service)
