"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from src.config import Settings, get_settings
from src.services.engine_service import EngineService, get_service


def get_engine_service() -> EngineService:
    """Return the running engine service.

    Tests replace this through ``app.dependency_overrides``.
    """
    return get_service()


# Annotated shortcuts for route signatures
Engine = Annotated[EngineService, Depends(get_engine_service)]
AppSettings = Annotated[Settings, Depends(get_settings)]
